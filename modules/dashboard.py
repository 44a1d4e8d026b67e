"""
Módulo de Dashboard
Painel inicial do membro: frequência pessoal, liderança, próximos eventos
e a Palavra do Dia mais recente
"""
import html
import streamlit as st
import plotly.graph_objects as go
from modules.auth import get_usuario_atual
from modules.frequencia import get_frequencia_pessoal, status_frequencia, formatar_percentual
from modules.perfis import get_perfil, get_lideranca, nome_papel
from modules.eventos import get_proximos_eventos
from modules.palavra_dia import get_palavra_atual
from modules.mural import sanitizar_html
from config.settings import JANELA_PAINEL_DIAS, LIMITE_FREQUENCIA_BAIXA, formatar_data_hora_br

ICONES_PAPEL = {
    'lider': '👑',
    'lider_treinamento': '🎓',
    'membro': '👤'
}

def get_resumo_dashboard(usuario: dict) -> dict:
    """Coleta os dados do painel inicial"""
    perfil = get_perfil(usuario['usuario_id']) or usuario
    frequencia = get_frequencia_pessoal(perfil, JANELA_PAINEL_DIAS)
    frequencia['faltas'] = frequencia['total_reunioes'] - frequencia['presencas']

    return {
        'perfil': perfil,
        'frequencia': frequencia,
        'lideranca': get_lideranca(),
        'proximos_eventos': get_proximos_eventos(3),
        'palavra': get_palavra_atual()
    }

def render_dashboard():
    """Função principal do dashboard"""
    usuario = get_usuario_atual()
    resumo = get_resumo_dashboard(usuario)
    frequencia = resumo['frequencia']

    primeiro_nome = resumo['perfil']['nome'].split(' ')[0]
    st.title(f"Olá, {primeiro_nome}! 👋")
    st.caption("Bem-vindo(a) ao seu painel da célula")

    # KPIs de frequência
    taxa = frequencia['taxa_presenca']
    status, cor = status_frequencia(taxa)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Frequência", formatar_percentual(taxa))
    col2.metric("Reuniões", frequencia['total_reunioes'])
    col3.metric("Faltas", frequencia['faltas'])
    col4.markdown(
        f"<div style='padding-top: 1.6rem;'><span style='color: {cor}; font-weight: bold;'>● {status}</span></div>",
        unsafe_allow_html=True
    )
    st.caption(f"Últimos {JANELA_PAINEL_DIAS} dias")

    col1, col2 = st.columns([1, 1])

    with col1:
        fig = go.Figure(go.Indicator(
            mode="gauge+number",
            value=round(taxa),
            number={'suffix': '%'},
            gauge={
                'axis': {'range': [0, 100]},
                'bar': {'color': cor},
                'threshold': {'line': {'color': 'gray', 'width': 2}, 'value': LIMITE_FREQUENCIA_BAIXA}
            }
        ))
        fig.update_layout(height=250, margin=dict(t=30, b=10, l=30, r=30))
        st.plotly_chart(fig, use_container_width=True)

    with col2:
        st.markdown("### 👥 Liderança")
        if not resumo['lideranca']:
            st.caption("Nenhum líder cadastrado.")
        for lider in resumo['lideranca']:
            detalhes = nome_papel(lider['papel'])
            if lider.get('idade'):
                detalhes = f"{lider['idade']} anos • {detalhes}"
            st.markdown(f"{ICONES_PAPEL.get(lider['papel'], '👤')} **{lider['nome']}**  \n{detalhes}")

    st.markdown("---")

    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### 📅 Próximos Eventos")
        if not resumo['proximos_eventos']:
            st.info("Nenhum evento agendado.")
        for evento in resumo['proximos_eventos']:
            st.markdown(f"""
                <div style='background: #f8f9fa; padding: 0.6rem; border-radius: 8px; margin-bottom: 0.5rem;'>
                    <strong>{html.escape(evento['titulo'])}</strong><br>
                    <small>🕐 {formatar_data_hora_br(evento['data_evento'])}</small>
                </div>
            """, unsafe_allow_html=True)

    with col2:
        st.markdown("### 📖 Palavra do Dia")
        palavra = resumo['palavra']
        if not palavra:
            st.info("Nenhuma Palavra do Dia publicada ainda.")
        else:
            st.markdown(f"**{palavra['titulo']}**")
            st.markdown(sanitizar_html(palavra['conteudo']), unsafe_allow_html=True)
            st.caption(f"{palavra['autor_nome'] or ''} • {formatar_data_hora_br(palavra['data_cadastro'])}")
