"""
Mural da célula
Regras comuns às publicações (pedidos de oração e testemunhos):
validação, HTML restrito, anonimato, respostas e exclusão
"""
import html
import logging
import re
import streamlit as st
from database.db import get_connection
from modules.auth import registrar_log, exigir_permissao, tem_permissao
from modules.notificacoes import criar_notificacao
from config.settings import TAGS_HTML_PERMITIDAS, formatar_data_hora_br

logger = logging.getLogger(__name__)

# Tabelas de cada tipo de publicação com respostas
TIPOS_PUBLICACAO = {
    'oracao': {
        'tabela': 'pedidos_oracao',
        'tabela_respostas': 'respostas_oracao',
        'chave': 'pedido_id',
        'nome': 'pedido de oração'
    },
    'testemunho': {
        'tabela': 'testemunhos',
        'tabela_respostas': 'respostas_testemunho',
        'chave': 'testemunho_id',
        'nome': 'testemunho'
    }
}

AUTOR_ANONIMO = "Anônimo"

_RE_SCRIPT = re.compile(r'<script\b[^>]*>.*?</script\s*>', re.IGNORECASE | re.DOTALL)
_RE_TAG_PERMITIDA = re.compile(
    r'&lt;(/?)(' + '|'.join(t for t in TAGS_HTML_PERMITIDAS if t != 'br') + r')&gt;',
    re.IGNORECASE
)
_RE_BR = re.compile(r'&lt;br\s*/?&gt;', re.IGNORECASE)
_RE_MARKDOWN = re.compile(r'([\\`*_{}\[\]()#+\-.!|~<>])')

# ==================== REGRAS COMUNS ====================

def sanitizar_html(texto: str) -> str:
    """
    Mantém apenas <strong>, <em>, <u> e <br>.
    Scripts são removidos com o conteúdo, o resto é escapado e as quebras
    de linha viram <br>.
    """
    if not texto:
        return ''
    texto = _RE_SCRIPT.sub('', texto)
    texto = html.escape(texto)
    texto = _RE_TAG_PERMITIDA.sub(lambda m: f"<{m.group(1)}{m.group(2).lower()}>", texto)
    texto = _RE_BR.sub('<br>', texto)
    return texto.replace('\r\n', '\n').replace('\n', '<br>')

def escapar_markdown(texto: str) -> str:
    """Escapa caracteres de formatação do markdown (nomes em negrito, títulos)"""
    return _RE_MARKDOWN.sub(r'\\\1', texto or '')

def validar_publicacao(titulo: str, conteudo: str, limite: int = None,
                       conteudo_obrigatorio: bool = True) -> tuple:
    """Valida título e conteúdo; retorna os dois sem espaços nas pontas"""
    titulo = (titulo or '').strip()
    conteudo = (conteudo or '').strip()

    if not titulo:
        raise ValueError("O título é obrigatório.")
    if conteudo_obrigatorio and not conteudo:
        raise ValueError("O conteúdo é obrigatório.")
    if limite and len(conteudo) > limite:
        raise ValueError(f"O conteúdo deve ter no máximo {limite} caracteres.")

    return titulo, conteudo

def aplicar_anonimato(publicacao: dict, usuario: dict) -> dict:
    """Esconde nome, avatar e id do autor de publicações anônimas (exceto para o próprio autor)"""
    publicacao = dict(publicacao)
    publicacao['eh_autor'] = bool(usuario) and publicacao.get('criado_por') == usuario.get('usuario_id')

    if publicacao.get('anonimo') and not publicacao['eh_autor']:
        publicacao['autor_nome'] = AUTOR_ANONIMO
        publicacao['autor_avatar'] = None
        publicacao['criado_por'] = None

    return publicacao

def pode_excluir(publicacao: dict, usuario: dict) -> bool:
    """Autor ou liderança com permissão de moderar"""
    return publicacao.get('eh_autor') or tem_permissao(usuario, 'publicacoes.moderar')

# ==================== FUNÇÕES DE DADOS ====================

def _tipo(tipo: str) -> dict:
    if tipo not in TIPOS_PUBLICACAO:
        raise ValueError(f"Tipo de publicação inválido: {tipo}")
    return TIPOS_PUBLICACAO[tipo]

def listar_publicacoes(tipo: str, usuario: dict, limite: int = 100) -> list:
    """Publicações mais recentes primeiro, com o total de respostas"""
    cfg = _tipo(tipo)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(f'''
            SELECT pub.*, p.nome as autor_nome, p.avatar_url as autor_avatar,
                   (SELECT COUNT(*) FROM {cfg['tabela_respostas']} r
                    WHERE r.{cfg['chave']} = pub.id) as total_respostas
            FROM {cfg['tabela']} pub
            LEFT JOIN perfis p ON p.usuario_id = pub.criado_por
            ORDER BY pub.data_cadastro DESC, pub.id DESC
            LIMIT ?
        ''', (limite,))
        return [aplicar_anonimato(dict(row), usuario) for row in cursor.fetchall()]

def get_publicacao(tipo: str, publicacao_id: int, usuario: dict) -> dict | None:
    cfg = _tipo(tipo)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(f'''
            SELECT pub.*, p.nome as autor_nome, p.avatar_url as autor_avatar
            FROM {cfg['tabela']} pub
            LEFT JOIN perfis p ON p.usuario_id = pub.criado_por
            WHERE pub.id = ?
        ''', (publicacao_id,))
        row = cursor.fetchone()
        return aplicar_anonimato(dict(row), usuario) if row else None

def get_respostas(tipo: str, publicacao_id: int, usuario: dict) -> list:
    """
    Respostas de uma publicação em ordem cronológica.
    Em publicação anônima, as respostas do próprio autor também saem como anônimas
    para os outros leitores.
    """
    cfg = _tipo(tipo)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(f'''
            SELECT r.*, p.nome as autor_nome, p.avatar_url as autor_avatar,
                   pub.anonimo as publicacao_anonima, pub.criado_por as publicacao_autor
            FROM {cfg['tabela_respostas']} r
            JOIN {cfg['tabela']} pub ON pub.id = r.{cfg['chave']}
            LEFT JOIN perfis p ON p.usuario_id = r.criado_por
            WHERE r.{cfg['chave']} = ?
            ORDER BY r.data_cadastro ASC, r.id ASC
        ''', (publicacao_id,))
        rows = [dict(row) for row in cursor.fetchall()]

    respostas = []
    for resposta in rows:
        anonima = resposta.pop('publicacao_anonima')
        autor_publicacao = resposta.pop('publicacao_autor')
        if anonima and resposta['criado_por'] == autor_publicacao:
            resposta = aplicar_anonimato(dict(resposta, anonimo=1), usuario)
            del resposta['anonimo']
        respostas.append(resposta)
    return respostas

def responder_publicacao(tipo: str, usuario: dict, publicacao_id: int, conteudo: str) -> int:
    """Adiciona uma resposta e avisa o autor da publicação"""
    exigir_permissao(usuario, 'publicacoes.responder')
    cfg = _tipo(tipo)

    conteudo = (conteudo or '').strip()
    if not conteudo:
        raise ValueError("Escreva uma resposta.")

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(f'SELECT titulo, criado_por FROM {cfg["tabela"]} WHERE id = ?', (publicacao_id,))
        publicacao = cursor.fetchone()
        if not publicacao:
            raise ValueError(f"O {cfg['nome']} não existe mais.")

        cursor.execute(f'''
            INSERT INTO {cfg['tabela_respostas']} ({cfg['chave']}, conteudo, criado_por)
            VALUES (?, ?, ?)
        ''', (publicacao_id, conteudo, usuario['usuario_id']))
        resposta_id = cursor.lastrowid

    if publicacao['criado_por'] != usuario['usuario_id']:
        criar_notificacao(
            publicacao['criado_por'],
            f"Nova resposta no seu {cfg['nome']}",
            f"{usuario['nome']} respondeu \"{publicacao['titulo']}\"",
            tipo=tipo
        )

    registrar_log(usuario['usuario_id'], f"{tipo}.responder", f"Resposta em {publicacao_id}")
    return resposta_id

def excluir_publicacao(tipo: str, usuario: dict, publicacao_id: int) -> dict:
    """Exclui a publicação (e suas respostas); retorna a linha excluída"""
    cfg = _tipo(tipo)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(f'SELECT * FROM {cfg["tabela"]} WHERE id = ?', (publicacao_id,))
        row = cursor.fetchone()
        if not row:
            raise ValueError(f"O {cfg['nome']} não existe mais.")

        publicacao = dict(row)
        if publicacao['criado_por'] != usuario['usuario_id']:
            exigir_permissao(usuario, 'publicacoes.moderar')

        cursor.execute(f'DELETE FROM {cfg["tabela"]} WHERE id = ?', (publicacao_id,))

    logger.info("%s %s excluído por %s", cfg['nome'], publicacao_id, usuario['usuario_id'])
    registrar_log(usuario['usuario_id'], f"{tipo}.excluir", f"Excluiu {cfg['nome']} {publicacao_id}")
    return publicacao

# ==================== RENDERIZAÇÃO ====================

def render_autor(nome: str, avatar_url: str = None, data=None):
    """Linha com avatar, nome e data"""
    col1, col2 = st.columns([1, 10])
    with col1:
        if avatar_url:
            st.image(avatar_url, width=32)
        else:
            st.write("👤")
    with col2:
        legenda = f"**{escapar_markdown(nome or AUTOR_ANONIMO)}**"
        if data:
            legenda += f" • {formatar_data_hora_br(data)}"
        st.markdown(legenda)

def render_respostas(tipo: str, publicacao: dict, usuario: dict):
    """Respostas e campo para responder"""
    with st.expander(f"💬 Respostas ({publicacao.get('total_respostas', 0)})"):
        for resposta in get_respostas(tipo, publicacao['id'], usuario):
            st.markdown(f"""
                <div style='background: #f5f5f5; padding: 0.5rem; border-radius: 5px; margin: 0.3rem 0;'>
                    <small><strong>{html.escape(resposta['autor_nome'] or '')}</strong>
                    • {formatar_data_hora_br(resposta['data_cadastro'])}</small><br>
                    <small>{sanitizar_html(resposta['conteudo'])}</small>
                </div>
            """, unsafe_allow_html=True)

        with st.form(f"form_resposta_{tipo}_{publicacao['id']}", clear_on_submit=True):
            texto = st.text_area("Sua resposta", height=80)
            if st.form_submit_button("Responder"):
                try:
                    responder_publicacao(tipo, usuario, publicacao['id'], texto)
                    st.rerun()
                except (PermissionError, ValueError) as e:
                    st.error(str(e))

def render_botao_excluir(tipo: str, publicacao: dict, usuario: dict, ao_excluir=None):
    """Botão de exclusão para o autor e para a liderança"""
    if not pode_excluir(publicacao, usuario):
        return

    if st.button("🗑️ Excluir", key=f"del_{tipo}_{publicacao['id']}"):
        try:
            excluida = excluir_publicacao(tipo, usuario, publicacao['id'])
            if ao_excluir:
                ao_excluir(excluida)
            st.success("Publicação excluída.")
            st.rerun()
        except (PermissionError, ValueError) as e:
            st.error(str(e))
