"""
Módulo de Testemunhos
Relatos com imagem ou vídeo opcional
"""
import logging
import streamlit as st
from database.db import get_connection
from modules.auth import get_usuario_atual, registrar_log, exigir_permissao
from modules import mural, storage
from config.settings import LIMITE_TESTEMUNHO, BUCKET_MIDIA

PASTA_ANONIMOS = "anonimos"

logger = logging.getLogger(__name__)

# ==================== FUNÇÕES DE DADOS ====================

def criar_testemunho(usuario: dict, titulo: str, conteudo: str, anonimo: bool = False,
                     arquivo: tuple = None) -> int:
    """
    Cria um testemunho.
    `arquivo` é (nome, conteúdo em bytes, content type) da mídia opcional,
    enviada ao bucket de mídia; o tipo vem do content type.
    """
    exigir_permissao(usuario, 'publicacoes.publicar')
    titulo, conteudo = mural.validar_publicacao(titulo, conteudo, LIMITE_TESTEMUNHO)

    midia_url = None
    tipo_midia = 'texto'
    if arquivo:
        nome_arquivo, dados, content_type = arquivo
        tipo_midia = storage.tipo_midia(content_type)
        if tipo_midia == 'texto':
            raise ValueError("Envie apenas imagens ou vídeos.")
        # Mídia anônima não leva o id do autor no caminho
        dono = PASTA_ANONIMOS if anonimo else usuario['usuario_id']
        midia_url = storage.upload_arquivo(
            BUCKET_MIDIA, storage.gerar_nome_arquivo(dono, nome_arquivo), dados
        )

    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO testemunhos (titulo, conteudo, anonimo, midia_url, tipo_midia, criado_por)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (titulo, conteudo, 1 if anonimo else 0, midia_url, tipo_midia, usuario['usuario_id']))
            testemunho_id = cursor.lastrowid
    except Exception:
        if midia_url:
            logger.warning("Testemunho não foi salvo; removendo mídia %s", midia_url)
            storage.remover_arquivo(BUCKET_MIDIA, midia_url)
        raise

    registrar_log(usuario['usuario_id'], 'testemunho.criar', f"Testemunho {testemunho_id}")
    return testemunho_id

def get_testemunhos(usuario: dict) -> list:
    """Testemunhos mais recentes primeiro, com anonimato aplicado e URL pública da mídia"""
    testemunhos = mural.listar_publicacoes('testemunho', usuario)
    for t in testemunhos:
        t['midia_publica'] = storage.get_public_url(BUCKET_MIDIA, t['midia_url']) if t['midia_url'] else None
    return testemunhos

def responder_testemunho(usuario: dict, testemunho_id: int, conteudo: str) -> int:
    return mural.responder_publicacao('testemunho', usuario, testemunho_id, conteudo)

def excluir_testemunho(usuario: dict, testemunho_id: int) -> dict:
    """Exclui o testemunho e a mídia anexada"""
    testemunho = mural.excluir_publicacao('testemunho', usuario, testemunho_id)
    _remover_midia(testemunho)
    return testemunho

def _remover_midia(testemunho: dict):
    if testemunho.get('midia_url'):
        storage.remover_arquivo(BUCKET_MIDIA, testemunho['midia_url'])

# ==================== RENDERIZAÇÃO ====================

def render_testemunhos():
    """Função principal do módulo de testemunhos"""
    st.title("✨ Testemunhos")
    usuario = get_usuario_atual()

    with st.expander("➕ Compartilhar um Testemunho", expanded=False):
        with st.form("novo_testemunho", clear_on_submit=True):
            titulo = st.text_input("Título *")
            conteudo = st.text_area("Seu testemunho *", height=150, max_chars=LIMITE_TESTEMUNHO)
            midia = st.file_uploader("Imagem ou vídeo (opcional)",
                                     type=['png', 'jpg', 'jpeg', 'gif', 'webp', 'mp4', 'mov', 'webm'])
            anonimo = st.checkbox("Publicar de forma anônima")

            if st.form_submit_button("✨ Publicar", use_container_width=True):
                arquivo = (midia.name, midia.getvalue(), midia.type) if midia else None
                try:
                    criar_testemunho(usuario, titulo, conteudo, anonimo, arquivo)
                    st.success("Testemunho publicado! Obrigado por compartilhar.")
                    st.rerun()
                except (PermissionError, ValueError) as e:
                    st.error(str(e))

    testemunhos = get_testemunhos(usuario)

    if not testemunhos:
        st.info("Nenhum testemunho compartilhado ainda.")
        return

    for t in testemunhos:
        with st.container(border=True):
            mural.render_autor(t['autor_nome'], t['autor_avatar'], t['data_cadastro'])
            st.markdown(f"#### {t['titulo']}")

            if t['tipo_midia'] == 'imagem' and t['midia_publica']:
                st.image(t['midia_publica'], use_container_width=True)
            elif t['tipo_midia'] == 'video' and t['midia_publica']:
                st.video(t['midia_publica'])

            st.markdown(mural.sanitizar_html(t['conteudo']), unsafe_allow_html=True)

            mural.render_respostas('testemunho', t, usuario)
            mural.render_botao_excluir('testemunho', t, usuario, ao_excluir=_remover_midia)
