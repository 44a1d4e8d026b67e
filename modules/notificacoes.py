"""
Módulo de Notificações
Avisos de novos eventos e de respostas às publicações
"""
import html
import streamlit as st
from database.db import get_connection
from modules.auth import get_usuario_atual
from config.settings import formatar_data_hora_br

ICONES = {
    'evento': '📅',
    'oracao': '🙏',
    'testemunho': '✨',
    'sistema': '🔔'
}

# ==================== FUNÇÕES DE DADOS ====================

def criar_notificacao(usuario_id: int, titulo: str, descricao: str = None,
                      tipo: str = 'sistema') -> int:
    """Cria uma nova notificação"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            INSERT INTO notificacoes (usuario_id, tipo, titulo, descricao)
            VALUES (?, ?, ?, ?)
        ''', (usuario_id, tipo, titulo, descricao))
        return cursor.lastrowid

def notificar_todos(titulo: str, descricao: str = None, tipo: str = 'sistema',
                    exceto: int = None) -> int:
    """Cria a mesma notificação para todos os usuários ativos"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            INSERT INTO notificacoes (usuario_id, tipo, titulo, descricao)
            SELECT id, ?, ?, ? FROM usuarios
            WHERE ativo = 1 AND id != ?
        ''', (tipo, titulo, descricao, exceto if exceto is not None else -1))
        return cursor.rowcount

def get_notificacoes(usuario_id: int, apenas_nao_lidas: bool = False, limite: int = 50) -> list:
    """Busca notificações do usuário, mais recentes primeiro"""
    query = 'SELECT * FROM notificacoes WHERE usuario_id = ?'
    params = [usuario_id]

    if apenas_nao_lidas:
        query += ' AND lida = 0'

    query += ' ORDER BY data_cadastro DESC, id DESC LIMIT ?'
    params.append(limite)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(query, params)
        return [dict(row) for row in cursor.fetchall()]

def marcar_como_lida(usuario_id: int, notificacao_id: int) -> bool:
    """Marca uma notificação do próprio usuário como lida"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE notificacoes SET lida = 1
            WHERE id = ? AND usuario_id = ?
        ''', (notificacao_id, usuario_id))
        return cursor.rowcount > 0

def marcar_todas_lidas(usuario_id: int) -> int:
    """Marca todas as notificações como lidas"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE notificacoes SET lida = 1
            WHERE usuario_id = ? AND lida = 0
        ''', (usuario_id,))
        return cursor.rowcount

def contar_nao_lidas(usuario_id: int) -> int:
    """Conta notificações não lidas"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT COUNT(*) FROM notificacoes WHERE usuario_id = ? AND lida = 0
        ''', (usuario_id,))
        return cursor.fetchone()[0]

# ==================== RENDERIZAÇÃO ====================

def render_notificacoes():
    """Função principal do módulo de notificações"""
    st.title("🔔 Notificações")
    usuario = get_usuario_atual()

    nao_lidas = contar_nao_lidas(usuario['usuario_id'])

    col1, col2 = st.columns([3, 1])
    with col1:
        if nao_lidas > 0:
            st.info(f"📬 Você tem **{nao_lidas}** notificações não lidas")
        filtro = st.radio("Filtrar", ['Todas', 'Não lidas'], horizontal=True)
    with col2:
        if nao_lidas > 0 and st.button("✓ Marcar todas como lidas"):
            marcar_todas_lidas(usuario['usuario_id'])
            st.rerun()

    notificacoes = get_notificacoes(usuario['usuario_id'], apenas_nao_lidas=(filtro == 'Não lidas'))

    if not notificacoes:
        st.info("📭 Nenhuma notificação encontrada.")
        return

    for notif in notificacoes:
        render_notificacao(notif)

def render_notificacao(notif: dict):
    """Renderiza uma notificação"""
    usuario = get_usuario_atual()
    cor_fundo = '#fff3e0' if not notif['lida'] else '#f5f5f5'

    col1, col2, col3 = st.columns([0.5, 8, 1.5])

    with col1:
        st.write(ICONES.get(notif['tipo'], '🔔'))

    with col2:
        st.markdown(f"""
            <div style='background: {cor_fundo}; padding: 0.5rem; border-radius: 5px;'>
                <strong>{html.escape(notif['titulo'])}</strong><br>
                <small>{html.escape(notif['descricao'] or '')}</small><br>
                <small style='color: #666;'>{formatar_data_hora_br(notif['data_cadastro'])}</small>
            </div>
        """, unsafe_allow_html=True)

    with col3:
        if not notif['lida']:
            if st.button("✓", key=f"ler_{notif['id']}", help="Marcar como lida"):
                marcar_como_lida(usuario['usuario_id'], notif['id'])
                st.rerun()

    st.markdown("<hr style='margin: 0.3rem 0;'>", unsafe_allow_html=True)

def render_badge_notificacoes(usuario_id: int) -> str:
    """Rótulo do menu com a contagem de não lidas (para sidebar)"""
    nao_lidas = contar_nao_lidas(usuario_id)
    if nao_lidas > 0:
        return f"🔔 Notificações ({nao_lidas})"
    return "🔔 Notificações"
