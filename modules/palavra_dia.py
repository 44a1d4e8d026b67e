"""
Módulo Palavra do Dia
Mensagem diária publicada pela liderança
"""
from datetime import datetime
import streamlit as st
from database.db import get_connection
from modules.auth import get_usuario_atual, registrar_log, exigir_permissao, tem_permissao
from modules import mural
from config.settings import LIMITE_PALAVRA_DIA, formatar_data_hora_br

# ==================== FUNÇÕES DE DADOS ====================

def get_palavras() -> list:
    """Todas as palavras, mais recente primeiro"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT pd.*, p.nome as autor_nome, p.avatar_url as autor_avatar
            FROM palavra_dia pd
            LEFT JOIN perfis p ON p.usuario_id = pd.criado_por
            ORDER BY pd.data_cadastro DESC, pd.id DESC
        ''')
        return [dict(row) for row in cursor.fetchall()]

def get_palavra_atual() -> dict | None:
    """Palavra mais recente (destaque do dashboard)"""
    palavras = get_palavras()
    return palavras[0] if palavras else None

def foi_editada(palavra: dict) -> bool:
    return palavra['data_atualizacao'] != palavra['data_cadastro']

def publicar_palavra(usuario: dict, titulo: str, conteudo: str) -> int:
    """Publica uma nova Palavra do Dia"""
    exigir_permissao(usuario, 'palavra.publicar')
    titulo, conteudo = mural.validar_publicacao(titulo, conteudo, LIMITE_PALAVRA_DIA)

    agora = datetime.now().isoformat(sep=' ', timespec='microseconds')
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            INSERT INTO palavra_dia (titulo, conteudo, criado_por, data_cadastro, data_atualizacao)
            VALUES (?, ?, ?, ?, ?)
        ''', (titulo, conteudo, usuario['usuario_id'], agora, agora))
        palavra_id = cursor.lastrowid

    registrar_log(usuario['usuario_id'], 'palavra.publicar', f"Palavra {palavra_id}")
    return palavra_id

def editar_palavra(usuario: dict, palavra_id: int, titulo: str, conteudo: str):
    """Só quem publicou pode editar"""
    exigir_permissao(usuario, 'palavra.publicar')
    titulo, conteudo = mural.validar_publicacao(titulo, conteudo, LIMITE_PALAVRA_DIA)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('SELECT criado_por FROM palavra_dia WHERE id = ?', (palavra_id,))
        row = cursor.fetchone()
        if not row:
            raise ValueError("Palavra do Dia não encontrada.")
        if row['criado_por'] != usuario['usuario_id']:
            raise PermissionError("Apenas quem publicou pode editar esta Palavra do Dia.")

        cursor.execute('''
            UPDATE palavra_dia SET titulo = ?, conteudo = ?, data_atualizacao = ?
            WHERE id = ?
        ''', (titulo, conteudo, datetime.now().isoformat(sep=' ', timespec='microseconds'), palavra_id))

    registrar_log(usuario['usuario_id'], 'palavra.editar', f"Palavra {palavra_id}")

# ==================== RENDERIZAÇÃO ====================

def render_palavra_dia():
    """Função principal do módulo Palavra do Dia"""
    st.title("📖 Palavra do Dia")
    st.caption("Reflexões e mensagens para inspirar sua jornada")
    usuario = get_usuario_atual()

    if tem_permissao(usuario, 'palavra.publicar'):
        with st.expander("➕ Nova Palavra do Dia", expanded=False):
            render_form_palavra(usuario)

    palavras = get_palavras()
    if not palavras:
        st.info("Nenhuma Palavra do Dia publicada ainda.")
        return

    atual, historico = palavras[0], palavras[1:]

    with st.container(border=True):
        render_palavra(atual, usuario, destaque=True)

    if historico:
        st.markdown("### 📚 Palavras anteriores")
        for palavra in historico:
            with st.expander(f"{palavra['titulo']} • {formatar_data_hora_br(palavra['data_cadastro'])}"):
                render_palavra(palavra, usuario)

def render_palavra(palavra: dict, usuario: dict, destaque: bool = False):
    """Exibe uma palavra e, para o autor, o formulário de edição"""
    if destaque:
        st.markdown(f"## {palavra['titulo']}")
    mural.render_autor(palavra['autor_nome'], palavra['autor_avatar'], palavra['data_cadastro'])
    if foi_editada(palavra):
        st.caption(f"✏️ Editado em {formatar_data_hora_br(palavra['data_atualizacao'])}")

    st.markdown(mural.sanitizar_html(palavra['conteudo']), unsafe_allow_html=True)

    if palavra['criado_por'] == usuario['usuario_id'] and tem_permissao(usuario, 'palavra.publicar'):
        if st.toggle("✏️ Editar", key=f"editar_palavra_{palavra['id']}"):
            render_form_palavra(usuario, palavra)

def render_form_palavra(usuario: dict, palavra: dict = None):
    """Formulário de publicação/edição"""
    chave = f"form_palavra_{palavra['id']}" if palavra else "form_palavra_nova"

    with st.form(chave, clear_on_submit=palavra is None):
        titulo = st.text_input("Título *", value=palavra['titulo'] if palavra else "")
        conteudo = st.text_area(
            "Mensagem *", value=palavra['conteudo'] if palavra else "",
            height=200, max_chars=LIMITE_PALAVRA_DIA,
            help="Formatação permitida: <strong>negrito</strong>, <em>itálico</em>, <u>sublinhado</u> e <br>"
        )

        if st.form_submit_button("💾 Salvar" if palavra else "📤 Publicar", use_container_width=True):
            try:
                if palavra:
                    editar_palavra(usuario, palavra['id'], titulo, conteudo)
                    st.success("✅ Palavra do Dia atualizada!")
                else:
                    publicar_palavra(usuario, titulo, conteudo)
                    st.success("✅ Palavra do Dia publicada!")
                st.rerun()
            except (PermissionError, ValueError) as e:
                st.error(str(e))
