"""
Módulo de Perfis e Usuários
Cadastro de contas pelos líderes, edição de perfis, avatar e exclusão
"""
import logging
import sqlite3
from datetime import date, datetime
import streamlit as st
import pandas as pd
from database.db import get_connection, encrypt_data, decrypt_data
from modules.auth import (
    get_usuario_atual, registrar_log, exigir_permissao, requer_permissao,
    hash_senha, validar_senha, tem_permissao, get_logs_acesso
)
from modules import storage
from config.settings import (
    PAPEIS, PAPEL_PADRAO, PAPEIS_LIDERANCA, BUCKET_MIDIA, TAMANHO_MAXIMO_AVATAR,
    formatar_data_br
)

logger = logging.getLogger(__name__)

# ==================== UTILITÁRIOS ====================

def nome_papel(papel: str) -> str:
    return PAPEIS.get(papel, {}).get('nome', papel)

def validar_papel(papel: str) -> str:
    if papel not in PAPEIS:
        raise ValueError(f"Papel inválido: {papel}")
    return papel

def calcular_idade(data_nascimento, hoje: date = None) -> int | None:
    """Idade em anos completos a partir da data de nascimento"""
    if not data_nascimento:
        return None
    if isinstance(data_nascimento, str):
        data_nascimento = date.fromisoformat(data_nascimento[:10])
    hoje = hoje or date.today()
    idade = hoje.year - data_nascimento.year
    if (hoje.month, hoje.day) < (data_nascimento.month, data_nascimento.day):
        idade -= 1
    return idade

def _converter_idade(idade) -> int | None:
    if idade in (None, ''):
        return None
    try:
        idade = int(idade)
    except (TypeError, ValueError) as e:
        raise ValueError("Idade inválida.") from e
    if idade < 0 or idade > 130:
        raise ValueError("Idade inválida.")
    return idade

def _data_iso(valor) -> str | None:
    if not valor:
        return None
    if isinstance(valor, (date, datetime)):
        return valor.isoformat()[:10]
    return str(valor)[:10]

def _montar_perfil(row) -> dict:
    """Converte a linha do banco, descriptografando o endereço"""
    perfil = dict(row)
    perfil['endereco'] = decrypt_data(perfil.pop('endereco_criptografado', None))
    if perfil.get('idade') is None:
        perfil['idade'] = calcular_idade(perfil.get('data_nascimento'))
    return perfil

# ==================== FUNÇÕES DE DADOS ====================

def get_perfis() -> list:
    """Busca todos os perfis em ordem alfabética"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('SELECT * FROM perfis ORDER BY nome COLLATE NOCASE')
        return [_montar_perfil(row) for row in cursor.fetchall()]

def get_perfil(usuario_id: int) -> dict | None:
    """Busca o perfil de um usuário"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('SELECT * FROM perfis WHERE usuario_id = ?', (usuario_id,))
        row = cursor.fetchone()
        return _montar_perfil(row) if row else None

def get_lideranca() -> list:
    """Líderes e líderes em treinamento"""
    return [p for p in get_perfis() if p['papel'] in PAPEIS_LIDERANCA]

def criar_usuario(usuario: dict, dados: dict) -> int:
    """Cria conta e perfil de um novo membro"""
    exigir_permissao(usuario, 'usuarios.criar')

    nome = (dados.get('nome') or '').strip()
    email = (dados.get('email') or '').strip().lower()
    if not nome or not email:
        raise ValueError("Nome e e-mail são obrigatórios.")
    validar_senha(dados.get('senha'), dados.get('confirmar_senha'))
    papel = validar_papel(dados.get('papel') or PAPEL_PADRAO)
    idade = _converter_idade(dados.get('idade'))

    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO usuarios (email, senha_hash) VALUES (?, ?)
            ''', (email, hash_senha(dados['senha'])))
            novo_id = cursor.lastrowid

            cursor.execute('''
                INSERT INTO perfis (usuario_id, nome, email, telefone, idade, papel)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (novo_id, nome, email, dados.get('telefone') or None, idade, papel))
    except sqlite3.IntegrityError as e:
        raise ValueError("Este e-mail já está cadastrado.") from e

    registrar_log(usuario['usuario_id'], 'usuarios.criar', f"Criou usuário: {email}")
    return novo_id

def atualizar_meu_perfil(usuario: dict, dados: dict):
    """Edição do próprio perfil"""
    nome = (dados.get('nome') or '').strip()
    if not nome:
        raise ValueError("Nome é obrigatório.")

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE perfis
            SET nome = ?, telefone = ?, endereco_criptografado = ?, idade = ?,
                data_nascimento = ?, data_atualizacao = ?
            WHERE usuario_id = ?
        ''', (nome, dados.get('telefone') or None,
              encrypt_data(dados.get('endereco') or None),
              _converter_idade(dados.get('idade')),
              _data_iso(dados.get('data_nascimento')),
              datetime.now().isoformat(timespec='seconds'),
              usuario['usuario_id']))

    registrar_log(usuario['usuario_id'], 'perfil.atualizar', 'Perfil atualizado')

def atualizar_usuario(usuario: dict, usuario_id: int, dados: dict):
    """Edição do perfil de outro membro pelos líderes"""
    exigir_permissao(usuario, 'usuarios.editar')

    nome = (dados.get('nome') or '').strip()
    email = (dados.get('email') or '').strip().lower()
    if not nome or not email:
        raise ValueError("Nome e e-mail são obrigatórios.")
    papel = validar_papel(dados.get('papel') or PAPEL_PADRAO)

    # Só o líder pode promover alguém a líder
    if papel == 'lider' and usuario.get('papel') != 'lider':
        raise PermissionError("Apenas líderes podem promover outros líderes.")

    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            if usuario.get('papel') != 'lider':
                cursor.execute('SELECT papel FROM perfis WHERE usuario_id = ?', (usuario_id,))
                atual = cursor.fetchone()
                if atual and atual['papel'] == 'lider':
                    raise PermissionError("Apenas líderes podem editar o perfil de outro líder.")

            cursor.execute('UPDATE usuarios SET email = ? WHERE id = ?', (email, usuario_id))
            cursor.execute('''
                UPDATE perfis
                SET nome = ?, email = ?, idade = ?, telefone = ?, papel = ?, data_atualizacao = ?
                WHERE usuario_id = ?
            ''', (nome, email, _converter_idade(dados.get('idade')),
                  dados.get('telefone') or None, papel,
                  datetime.now().isoformat(timespec='seconds'), usuario_id))
            if cursor.rowcount == 0:
                raise ValueError("Usuário não encontrado.")
    except sqlite3.IntegrityError as e:
        raise ValueError("Este e-mail já está em uso.") from e

    registrar_log(usuario['usuario_id'], 'usuarios.editar', f"Editou usuário {usuario_id}")

def excluir_usuario(usuario: dict, usuario_id: int) -> bool:
    """Exclui conta, perfil, frequência e notificações de um membro"""
    exigir_permissao(usuario, 'usuarios.excluir')
    if usuario_id == usuario['usuario_id']:
        raise ValueError("Você não pode excluir sua própria conta.")

    with get_connection() as conn:
        cursor = conn.cursor()
        # perfis, frequencia e notificacoes saem por ON DELETE CASCADE
        cursor.execute('DELETE FROM usuarios WHERE id = ?', (usuario_id,))
        excluido = cursor.rowcount > 0

    if excluido:
        logger.info("Usuário %s excluído por %s", usuario_id, usuario['usuario_id'])
        for caminho in storage.listar_arquivos(BUCKET_MIDIA, f"avatars/{usuario_id}"):
            storage.remover_arquivo(BUCKET_MIDIA, caminho)
        registrar_log(usuario['usuario_id'], 'usuarios.excluir', f"Excluiu usuário {usuario_id}")
    return excluido

def atualizar_avatar(usuario: dict, nome_arquivo: str, conteudo: bytes, content_type: str) -> str:
    """Valida, recorta e salva a foto de perfil; retorna a nova URL"""
    if not storage.eh_imagem(content_type):
        raise ValueError("Por favor, selecione apenas imagens.")
    if len(conteudo) > TAMANHO_MAXIMO_AVATAR:
        raise ValueError("A imagem deve ter no máximo 5MB.")

    imagem = storage.preparar_avatar(conteudo)
    pasta = f"avatars/{usuario['usuario_id']}"
    antigos = storage.listar_arquivos(BUCKET_MIDIA, pasta)

    # Nome novo a cada envio para não servir a imagem antiga do cache
    caminho = f"avatars/{storage.gerar_nome_arquivo(usuario['usuario_id'], 'avatar.jpg')}"
    storage.upload_arquivo(BUCKET_MIDIA, caminho, imagem)
    url = storage.get_public_url(BUCKET_MIDIA, caminho)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE perfis SET avatar_url = ?, data_atualizacao = ? WHERE usuario_id = ?
        ''', (url, datetime.now().isoformat(timespec='seconds'), usuario['usuario_id']))

    for antigo in antigos:
        storage.remover_arquivo(BUCKET_MIDIA, antigo)

    registrar_log(usuario['usuario_id'], 'perfil.avatar', f"Avatar atualizado ({nome_arquivo})")
    return url

# ==================== RENDERIZAÇÃO ====================

@requer_permissao('usuarios.ver')
def render_usuarios():
    """Função principal do módulo de usuários"""
    st.title("👥 Gerenciar Usuários")

    usuario = get_usuario_atual()

    abas = ["📋 Usuários", "➕ Novo Usuário"]
    if tem_permissao(usuario, 'logs.ver'):
        abas.append("📜 Logs")
    tabs = st.tabs(abas)

    with tabs[0]:
        render_lista_usuarios()

    with tabs[1]:
        render_novo_usuario()

    if len(tabs) > 2:
        with tabs[2]:
            render_logs()

def render_lista_usuarios():
    """Lista de usuários com edição e exclusão"""
    usuario = get_usuario_atual()
    perfis = get_perfis()

    if not perfis:
        st.info("Nenhum usuário cadastrado.")
        return

    if st.session_state.get('usuario_edit'):
        render_form_edicao(st.session_state.usuario_edit)

    for p in perfis:
        col1, col2, col3, col4, col5 = st.columns([3, 3, 2, 1, 1])

        with col1:
            st.write(f"**{p['nome']}**")
            if p.get('idade'):
                st.caption(f"{p['idade']} anos")
        with col2:
            st.caption(p['email'])
            if p.get('telefone'):
                st.caption(f"📞 {p['telefone']}")
        with col3:
            st.caption(nome_papel(p['papel']))
        with col4:
            if st.button("✏️", key=f"edit_usr_{p['usuario_id']}", help="Editar"):
                st.session_state.usuario_edit = p['usuario_id']
                st.rerun()
        with col5:
            if tem_permissao(usuario, 'usuarios.excluir') and p['usuario_id'] != usuario['usuario_id']:
                if st.button("🗑️", key=f"del_usr_{p['usuario_id']}", help="Excluir"):
                    st.session_state.usuario_excluir = p['usuario_id']

        if st.session_state.get('usuario_excluir') == p['usuario_id']:
            st.warning(f"Excluir {p['nome']}? Esta ação não pode ser desfeita.")
            col_a, col_b = st.columns(2)
            if col_a.button("Confirmar exclusão", key=f"conf_del_{p['usuario_id']}"):
                try:
                    excluir_usuario(usuario, p['usuario_id'])
                    st.success(f"{p['nome']} foi removido do sistema.")
                except (PermissionError, ValueError) as e:
                    st.error(str(e))
                st.session_state.usuario_excluir = None
                st.rerun()
            if col_b.button("Cancelar", key=f"canc_del_{p['usuario_id']}"):
                st.session_state.usuario_excluir = None
                st.rerun()

        st.markdown("<hr style='margin: 0.3rem 0;'>", unsafe_allow_html=True)

def render_form_edicao(usuario_id: int):
    """Formulário de edição de um usuário"""
    usuario = get_usuario_atual()
    perfil = get_perfil(usuario_id)
    if not perfil:
        st.session_state.usuario_edit = None
        return

    papeis = list(PAPEIS.keys())

    with st.expander(f"📝 Editar {perfil['nome']}", expanded=True):
        with st.form("form_editar_usuario"):
            nome = st.text_input("Nome *", value=perfil['nome'])
            email = st.text_input("E-mail *", value=perfil['email'])
            col1, col2, col3 = st.columns(3)
            with col1:
                idade = st.text_input("Idade", value=str(perfil['idade'] or ''))
            with col2:
                telefone = st.text_input("Telefone", value=perfil.get('telefone') or '')
            with col3:
                papel = st.selectbox("Papel", options=papeis, format_func=nome_papel,
                                     index=papeis.index(perfil['papel']))

            col1, col2 = st.columns(2)
            with col1:
                submit = st.form_submit_button("💾 Salvar", use_container_width=True)
            with col2:
                if st.form_submit_button("❌ Cancelar", use_container_width=True):
                    st.session_state.usuario_edit = None
                    st.rerun()

            if submit:
                try:
                    atualizar_usuario(usuario, usuario_id, {
                        'nome': nome, 'email': email, 'idade': idade,
                        'telefone': telefone, 'papel': papel
                    })
                    st.success(f"✅ {nome} foi atualizado no sistema.")
                    st.session_state.usuario_edit = None
                    st.rerun()
                except (PermissionError, ValueError) as e:
                    st.error(str(e))

def render_novo_usuario():
    """Cadastro de um novo membro"""
    usuario = get_usuario_atual()

    with st.form("form_novo_usuario", clear_on_submit=True):
        nome = st.text_input("Nome *")
        email = st.text_input("E-mail *")

        col1, col2 = st.columns(2)
        with col1:
            senha = st.text_input("Senha *", type="password")
        with col2:
            confirmar_senha = st.text_input("Confirmar senha *", type="password")

        col1, col2, col3 = st.columns(3)
        with col1:
            idade = st.text_input("Idade")
        with col2:
            telefone = st.text_input("Telefone")
        with col3:
            papel = st.selectbox("Papel", options=list(PAPEIS.keys()), format_func=nome_papel,
                                 index=list(PAPEIS.keys()).index(PAPEL_PADRAO))

        if st.form_submit_button("➕ Criar Usuário", use_container_width=True):
            try:
                criar_usuario(usuario, {
                    'nome': nome, 'email': email, 'senha': senha,
                    'confirmar_senha': confirmar_senha, 'idade': idade,
                    'telefone': telefone, 'papel': papel
                })
                st.success(f"✅ {nome} foi cadastrado(a) no sistema.")
            except (PermissionError, ValueError) as e:
                st.error(str(e))

def render_logs():
    """Últimas ações registradas"""
    logs = get_logs_acesso()
    if not logs:
        st.info("Nenhum registro.")
        return

    df = pd.DataFrame([{
        'Data': formatar_data_br(l['data_hora']) + ' ' + str(l['data_hora'])[11:16],
        'Usuário': l.get('usuario_nome') or '-',
        'Ação': l['acao'],
        'Detalhes': l.get('detalhes') or ''
    } for l in logs])
    st.dataframe(df, use_container_width=True, hide_index=True)
