"""
Módulo de Devocionais
"""
import streamlit as st
from database.db import get_connection
from modules.auth import get_usuario_atual, registrar_log, exigir_permissao, tem_permissao
from modules import mural, storage
from config.settings import BUCKET_DEVOCIONAIS

# ==================== FUNÇÕES DE DADOS ====================

def get_devocionais() -> list:
    """Devocionais mais recentes primeiro"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT d.*, p.nome as autor_nome, p.avatar_url as autor_avatar
            FROM devocionais d
            LEFT JOIN perfis p ON p.usuario_id = d.criado_por
            ORDER BY d.data_cadastro DESC, d.id DESC
        ''')
        return [dict(row) for row in cursor.fetchall()]

def criar_devocional(usuario: dict, titulo: str, conteudo: str, imagem: tuple = None) -> int:
    """
    Publica um devocional.
    `imagem` é (nome, conteúdo em bytes, content type); só imagens são aceitas.
    """
    exigir_permissao(usuario, 'publicacoes.publicar')
    titulo, conteudo = mural.validar_publicacao(titulo, conteudo)

    caminho = None
    imagem_url = None
    if imagem:
        nome_arquivo, dados, content_type = imagem
        if not storage.eh_imagem(content_type):
            raise ValueError("Por favor, selecione apenas arquivos de imagem.")
        caminho = storage.upload_arquivo(
            BUCKET_DEVOCIONAIS, storage.gerar_nome_arquivo(usuario['usuario_id'], nome_arquivo), dados
        )
        imagem_url = storage.get_public_url(BUCKET_DEVOCIONAIS, caminho)

    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO devocionais (titulo, conteudo, imagem_url, imagem_caminho, criado_por)
                VALUES (?, ?, ?, ?, ?)
            ''', (titulo, conteudo, imagem_url, caminho, usuario['usuario_id']))
            devocional_id = cursor.lastrowid
    except Exception:
        if caminho:
            storage.remover_arquivo(BUCKET_DEVOCIONAIS, caminho)
        raise

    registrar_log(usuario['usuario_id'], 'devocional.criar', f"Devocional {devocional_id}")
    return devocional_id

def excluir_devocional(usuario: dict, devocional_id: int):
    """Autor ou liderança"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('SELECT criado_por, imagem_caminho FROM devocionais WHERE id = ?', (devocional_id,))
        row = cursor.fetchone()
        if not row:
            raise ValueError("Devocional não encontrado.")
        if row['criado_por'] != usuario['usuario_id']:
            exigir_permissao(usuario, 'publicacoes.moderar')

        cursor.execute('DELETE FROM devocionais WHERE id = ?', (devocional_id,))

    if row['imagem_caminho']:
        storage.remover_arquivo(BUCKET_DEVOCIONAIS, row['imagem_caminho'])

    registrar_log(usuario['usuario_id'], 'devocional.excluir', f"Devocional {devocional_id}")

# ==================== RENDERIZAÇÃO ====================

def render_devocionais():
    """Função principal do módulo de devocionais"""
    st.title("📿 Devocionais")
    usuario = get_usuario_atual()

    with st.expander("➕ Novo Devocional", expanded=False):
        with st.form("novo_devocional", clear_on_submit=True):
            titulo = st.text_input("Título *")
            conteudo = st.text_area("Conteúdo *", height=200)
            arquivo = st.file_uploader("Imagem (opcional)", type=['png', 'jpg', 'jpeg', 'gif', 'webp'])

            if st.form_submit_button("📤 Publicar", use_container_width=True):
                imagem = (arquivo.name, arquivo.getvalue(), arquivo.type) if arquivo else None
                try:
                    criar_devocional(usuario, titulo, conteudo, imagem)
                    st.success("✅ Devocional criado com sucesso!")
                    st.rerun()
                except (PermissionError, ValueError) as e:
                    st.error(str(e))

    devocionais = get_devocionais()
    if not devocionais:
        st.info("Nenhum devocional publicado ainda.")
        return

    for d in devocionais:
        with st.container(border=True):
            mural.render_autor(d['autor_nome'], d['autor_avatar'], d['data_cadastro'])
            st.markdown(f"#### {d['titulo']}")
            if d['imagem_url']:
                st.image(d['imagem_url'], use_container_width=True)
            st.markdown(mural.sanitizar_html(d['conteudo']), unsafe_allow_html=True)

            if d['criado_por'] == usuario['usuario_id'] or tem_permissao(usuario, 'publicacoes.moderar'):
                if st.button("🗑️ Excluir", key=f"del_devocional_{d['id']}"):
                    try:
                        excluir_devocional(usuario, d['id'])
                        st.rerun()
                    except (PermissionError, ValueError) as e:
                        st.error(str(e))
