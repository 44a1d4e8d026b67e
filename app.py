"""
Tardezinha - Aplicativo da Célula
Aplicativo principal Streamlit
"""
import logging
import streamlit as st
from pathlib import Path
import sys

# Adicionar o diretório raiz ao path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import configurar_logging
from database.db import init_database, criar_lider_inicial
from modules.auth import login_page, get_usuario_atual, sidebar_usuario, tem_permissao
from modules.dashboard import render_dashboard
from modules.frequencia import render_frequencia
from modules.eventos import render_eventos
from modules.oracao import render_oracao
from modules.testemunhos import render_testemunhos
from modules.palavra_dia import render_palavra_dia
from modules.devocionais import render_devocionais
from modules.perfis import render_usuarios
from modules.notificacoes import render_notificacoes, render_badge_notificacoes
from modules.configuracoes import render_configuracoes

logger = logging.getLogger(__name__)

# Configuração da página
st.set_page_config(
    page_title="Tardezinha",
    page_icon="🌅",
    layout="wide",
    initial_sidebar_state="expanded"
)

# CSS customizado
st.markdown("""
    <style>
    .main .block-container {
        padding-top: 1.5rem;
        padding-bottom: 1.5rem;
        max-width: 1200px;
    }

    [data-testid="stSidebar"] {
        background: linear-gradient(180deg, #f97316 0%, #dc2626 100%);
    }

    [data-testid="stSidebar"] [data-testid="stVerticalBlock"] {
        gap: 0.3rem !important;
    }

    [data-testid="stSidebar"] .stMarkdown {
        color: white;
    }

    [data-testid="stSidebar"] .stButton > button {
        font-size: 0.85rem;
        padding: 0.4rem 0.5rem;
        margin: 0.15rem 0;
        border-radius: 6px;
        background-color: rgba(255,255,255,0.15);
        color: white;
        border: 1px solid rgba(255,255,255,0.3);
    }

    [data-testid="stSidebar"] .stButton > button:hover {
        background-color: rgba(255,255,255,0.25);
        border-color: rgba(255,255,255,0.5);
    }

    .stButton > button {
        border-radius: 8px;
        font-weight: 500;
    }

    .stTabs [data-baseweb="tab-list"] {
        gap: 8px;
    }

    [data-testid="metric-container"] {
        background: white;
        padding: 1rem;
        border-radius: 10px;
        box-shadow: 0 2px 8px rgba(0,0,0,0.05);
    }

    @media (max-width: 768px) {
        .main .block-container {
            padding: 1rem;
        }
    }
    </style>
""", unsafe_allow_html=True)

PAGINAS = {
    'dashboard': render_dashboard,
    'eventos': render_eventos,
    'oracao': render_oracao,
    'testemunhos': render_testemunhos,
    'palavra_dia': render_palavra_dia,
    'devocionais': render_devocionais,
    'frequencia': render_frequencia,
    'usuarios': render_usuarios,
    'notificacoes': render_notificacoes,
    'configuracoes': render_configuracoes,
}

def init_app():
    """Inicializa o aplicativo"""
    configurar_logging()

    # Inicializar banco de dados
    init_database()

    # Primeiro líder para o acesso inicial
    if criar_lider_inicial():
        logger.warning("Banco vazio: líder inicial criado, altere a senha no primeiro acesso")

def render_sidebar():
    """Renderiza a sidebar com menu de navegação"""
    usuario = get_usuario_atual()

    st.sidebar.markdown("""
        <div style='text-align: center; padding: 0.3rem 0; border-bottom: 1px solid rgba(255,255,255,0.2); margin-bottom: 0.3rem;'>
            <div style='color: white; font-size: 1.1rem; font-weight: bold; margin: 0;'>🌅 Tardezinha</div>
            <div style='color: rgba(255,255,255,0.8); font-size: 0.7rem;'>Nossa célula</div>
        </div>
    """, unsafe_allow_html=True)

    # Informações do usuário
    sidebar_usuario()

    st.sidebar.markdown("---")

    # Menu de navegação
    menu_items = [
        ("🏠 Início", "dashboard", None),
        ("📅 Eventos", "eventos", "eventos.ver"),
        ("🙏 Pedidos de Oração", "oracao", None),
        ("✨ Testemunhos", "testemunhos", None),
        ("📖 Palavra do Dia", "palavra_dia", None),
        ("📿 Devocionais", "devocionais", None),
        ("📊 Frequência", "frequencia", "frequencia.ver"),
        ("👥 Usuários", "usuarios", "usuarios.ver"),
        (render_badge_notificacoes(usuario['usuario_id']), "notificacoes", None),
        ("⚙️ Configurações", "configuracoes", None),
    ]

    if 'pagina_atual' not in st.session_state:
        st.session_state.pagina_atual = 'dashboard'

    for label, key, permissao in menu_items:
        if permissao is None or tem_permissao(usuario, permissao):
            if st.sidebar.button(label, key=f"menu_{key}", use_container_width=True):
                st.session_state.pagina_atual = key
                # Limpar estados de edição
                for state_key in list(st.session_state.keys()):
                    if state_key.endswith('_edit') or state_key.endswith('_excluir'):
                        del st.session_state[state_key]
                st.rerun()

def main():
    """Função principal"""
    init_app()

    # Verificar autenticação
    if not get_usuario_atual():
        login_page()
        return

    render_sidebar()

    pagina = st.session_state.get('pagina_atual', 'dashboard')
    PAGINAS.get(pagina, render_dashboard)()

if __name__ == "__main__":
    main()
