"""
Módulo de Pedidos de Oração
"""
import streamlit as st
from database.db import get_connection
from modules.auth import get_usuario_atual, registrar_log, exigir_permissao
from modules import mural
from config.settings import LIMITE_PEDIDO_ORACAO

# ==================== FUNÇÕES DE DADOS ====================

def criar_pedido_oracao(usuario: dict, titulo: str, conteudo: str, anonimo: bool = False) -> int:
    """Cria um pedido de oração"""
    exigir_permissao(usuario, 'publicacoes.publicar')
    titulo, conteudo = mural.validar_publicacao(titulo, conteudo, LIMITE_PEDIDO_ORACAO)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            INSERT INTO pedidos_oracao (titulo, conteudo, anonimo, criado_por)
            VALUES (?, ?, ?, ?)
        ''', (titulo, conteudo, 1 if anonimo else 0, usuario['usuario_id']))
        pedido_id = cursor.lastrowid

    registrar_log(usuario['usuario_id'], 'oracao.criar', f"Pedido {pedido_id}")
    return pedido_id

def get_pedidos_oracao(usuario: dict) -> list:
    """Pedidos mais recentes primeiro, com anonimato aplicado"""
    return mural.listar_publicacoes('oracao', usuario)

def responder_pedido(usuario: dict, pedido_id: int, conteudo: str) -> int:
    return mural.responder_publicacao('oracao', usuario, pedido_id, conteudo)

def excluir_pedido(usuario: dict, pedido_id: int) -> dict:
    return mural.excluir_publicacao('oracao', usuario, pedido_id)

# ==================== RENDERIZAÇÃO ====================

def render_oracao():
    """Função principal do módulo de oração"""
    st.title("🙏 Pedidos de Oração")
    usuario = get_usuario_atual()

    with st.expander("➕ Fazer um Pedido de Oração", expanded=False):
        with st.form("novo_pedido_oracao", clear_on_submit=True):
            titulo = st.text_input("Título *")
            conteudo = st.text_area("Seu pedido de oração *", height=100,
                                    max_chars=LIMITE_PEDIDO_ORACAO)
            anonimo = st.checkbox("Publicar de forma anônima")

            if st.form_submit_button("🙏 Enviar Pedido", use_container_width=True):
                try:
                    criar_pedido_oracao(usuario, titulo, conteudo, anonimo)
                    st.success("Pedido enviado! A célula está orando por você.")
                    st.rerun()
                except (PermissionError, ValueError) as e:
                    st.error(str(e))

    pedidos = get_pedidos_oracao(usuario)

    if not pedidos:
        st.info("Nenhum pedido de oração no momento.")
        return

    for pedido in pedidos:
        with st.container(border=True):
            mural.render_autor(pedido['autor_nome'], pedido['autor_avatar'], pedido['data_cadastro'])
            st.markdown(f"#### {pedido['titulo']}")
            st.markdown(mural.sanitizar_html(pedido['conteudo']), unsafe_allow_html=True)
            if pedido['anonimo'] and pedido['eh_autor']:
                st.caption("🔒 Publicado como anônimo")

            mural.render_respostas('oracao', pedido, usuario)
            mural.render_botao_excluir('oracao', pedido, usuario)
