"""
Módulo de Frequência
Registro de presença nas reuniões da célula, painel de acompanhamento
e contato via WhatsApp com quem está faltando
"""
import logging
import urllib.parse
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
import streamlit as st
import pandas as pd
import plotly.express as px
from database.db import get_connection
from modules.auth import get_usuario_atual, registrar_log, exigir_permissao, requer_permissao
from modules.perfis import get_perfis, nome_papel
from config.settings import (
    JANELA_FREQUENCIA_DIAS, LIMITE_FREQUENCIA_BAIXA, MAX_WORKERS_FREQUENCIA,
    FAIXAS_FREQUENCIA, MENSAGEM_WHATSAPP_FREQUENCIA, formatar_data_br
)

logger = logging.getLogger(__name__)

# ==================== UTILITÁRIOS ====================

def _como_data(valor) -> date:
    if isinstance(valor, date):
        return valor
    return date.fromisoformat(str(valor)[:10])

def status_frequencia(taxa: float) -> tuple:
    """Retorna (texto, cor) da faixa de frequência"""
    for minimo, texto, cor in FAIXAS_FREQUENCIA:
        if taxa >= minimo:
            return texto, cor
    return FAIXAS_FREQUENCIA[-1][1], FAIXAS_FREQUENCIA[-1][2]

def precisa_atencao(taxa: float) -> bool:
    """Membros abaixo do limite recebem a ação de contato"""
    return taxa < LIMITE_FREQUENCIA_BAIXA

def formatar_percentual(taxa: float) -> str:
    """Percentual inteiro, arredondando .5 para cima (62.5 -> 63%)"""
    inteiro = Decimal(str(taxa)).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return f"{inteiro}%"

def normalizar_telefone(telefone: str) -> str:
    """Mantém só dígitos, remove o nono dígito e adiciona o código do Brasil"""
    telefone_limpo = ''.join(filter(str.isdigit, telefone or ''))
    if not telefone_limpo:
        return ''

    # DDD + 9 + 8 dígitos: o wa.me aceita o número sem o nono dígito
    if len(telefone_limpo) == 11 and telefone_limpo[2] == '9':
        telefone_limpo = telefone_limpo[:2] + telefone_limpo[3:]

    if len(telefone_limpo) <= 11:
        telefone_limpo = '55' + telefone_limpo

    return telefone_limpo

def gerar_link_whatsapp(telefone: str, mensagem: str) -> str | None:
    """Gera link para enviar mensagem via WhatsApp"""
    telefone_limpo = normalizar_telefone(telefone)
    if not telefone_limpo:
        return None

    mensagem_encoded = urllib.parse.quote(mensagem)
    return f"https://wa.me/{telefone_limpo}?text={mensagem_encoded}"

def gerar_link_contato(perfil: dict) -> str | None:
    """Link de follow-up com a mensagem padrão da célula"""
    mensagem = MENSAGEM_WHATSAPP_FREQUENCIA.format(nome=perfil['nome'])
    return gerar_link_whatsapp(perfil.get('telefone'), mensagem)

# ==================== FUNÇÕES DE DADOS ====================

def get_frequencia_data(data: date) -> dict:
    """Presenças registradas em uma data, por usuário"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT usuario_id, presente FROM frequencia WHERE data = ?
        ''', (_como_data(data).isoformat(),))
        return {row['usuario_id']: bool(row['presente']) for row in cursor.fetchall()}

def registrar_frequencia(usuario: dict, data: date, presencas: dict) -> int:
    """Salva a lista de presença de uma reunião (upsert por usuário e data)"""
    exigir_permissao(usuario, 'frequencia.registrar')

    data_iso = _como_data(data).isoformat()
    registros = [
        (usuario_id, data_iso, 1 if presente else 0, usuario['usuario_id'])
        for usuario_id, presente in presencas.items()
    ]

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.executemany('''
            INSERT INTO frequencia (usuario_id, data, presente, registrado_por)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (usuario_id, data) DO UPDATE
            SET presente = excluded.presente,
                registrado_por = excluded.registrado_por
        ''', registros)

    registrar_log(usuario['usuario_id'], 'frequencia.registrar',
                  f"{len(registros)} presenças em {data_iso}")
    return len(registros)

def get_frequencia_usuario(usuario_id: int, desde: date) -> list:
    """Registros de frequência de um usuário a partir de uma data"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT * FROM frequencia
            WHERE usuario_id = ? AND data >= ?
            ORDER BY data DESC
        ''', (usuario_id, _como_data(desde).isoformat()))
        return [dict(row) for row in cursor.fetchall()]

def calcular_frequencia(perfil: dict, registros: list) -> dict:
    """Calcula taxa de presença, total de reuniões e última presença"""
    total_reunioes = len(registros)
    datas_presentes = [_como_data(r['data']) for r in registros if r['presente']]
    presencas = len(datas_presentes)
    taxa_presenca = (presencas / total_reunioes) * 100 if total_reunioes > 0 else 0.0

    return {
        'perfil': perfil,
        'taxa_presenca': taxa_presenca,
        'total_reunioes': total_reunioes,
        'presencas': presencas,
        'ultima_presenca': max(datas_presentes) if datas_presentes else None
    }

def agregar_frequencia(perfis: list, dias: int = JANELA_FREQUENCIA_DIAS, hoje: date = None,
                       buscar=None, max_workers: int = MAX_WORKERS_FREQUENCIA) -> tuple:
    """
    Calcula a frequência de cada perfil nos últimos `dias` dias.

    As buscas por usuário rodam em paralelo (no máximo `max_workers` por vez).
    Se a busca de um usuário falhar ele fica de fora do resultado e entra na
    lista de falhas; os demais seguem normalmente.

    Retorna (resultados ordenados da menor para a maior taxa, falhas).
    """
    if not perfis:
        return [], []

    hoje = hoje or date.today()
    desde = hoje - timedelta(days=dias)
    buscar = buscar or get_frequencia_usuario

    calculados = {}
    erros = {}
    workers = max(1, min(max_workers, len(perfis)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futuros = {executor.submit(buscar, p['usuario_id'], desde): p for p in perfis}

        for futuro in as_completed(futuros):
            perfil = futuros[futuro]
            try:
                registros = futuro.result()
            except Exception as e:
                logger.warning("Erro ao buscar frequência de %s: %s", perfil.get('nome'), e)
                erros[perfil['usuario_id']] = str(e)
                continue
            calculados[perfil['usuario_id']] = calcular_frequencia(perfil, registros)

    # Mantém a ordem de entrada (por nome) entre taxas iguais
    resultados = [calculados[p['usuario_id']] for p in perfis if p['usuario_id'] in calculados]
    resultados.sort(key=lambda r: r['taxa_presenca'])

    falhas = [{'perfil': p, 'erro': erros[p['usuario_id']]}
              for p in perfis if p['usuario_id'] in erros]
    return resultados, falhas

def get_painel_frequencia(dias: int = JANELA_FREQUENCIA_DIAS) -> tuple:
    """Frequência de todos os perfis para o painel dos líderes"""
    return agregar_frequencia(get_perfis(), dias=dias)

def get_frequencia_pessoal(perfil: dict, dias: int) -> dict:
    """Frequência de um único membro"""
    desde = date.today() - timedelta(days=dias)
    return calcular_frequencia(perfil, get_frequencia_usuario(perfil['usuario_id'], desde))

# ==================== RENDERIZAÇÃO ====================

@requer_permissao('frequencia.ver')
def render_frequencia():
    """Função principal do módulo de frequência"""
    st.title("📊 Frequência")

    tab1, tab2 = st.tabs(["📉 Painel de Frequência", "✅ Registrar Presença"])

    with tab1:
        render_painel_frequencia()

    with tab2:
        render_registro_frequencia()

def render_painel_frequencia():
    """Painel com a participação dos membros, menor frequência primeiro"""
    st.caption(f"Participação dos membros nos últimos {JANELA_FREQUENCIA_DIAS} dias")

    try:
        with st.spinner("Carregando dados de frequência..."):
            resultados, falhas = get_painel_frequencia()
    except Exception as e:
        st.error(f"Erro ao carregar dados: {e}")
        return

    if falhas:
        nomes = ', '.join(f['perfil']['nome'] for f in falhas)
        st.warning(f"Não foi possível carregar a frequência de: {nomes}")

    if not resultados:
        st.info("Ainda não há dados de frequência registrados.")
        return

    em_atencao = [r for r in resultados if precisa_atencao(r['taxa_presenca'])]
    media = sum(r['taxa_presenca'] for r in resultados) / len(resultados)

    col1, col2, col3 = st.columns(3)
    col1.metric("Membros", len(resultados))
    col2.metric("Frequência média", formatar_percentual(media))
    col3.metric("Precisam de atenção", len(em_atencao))

    df = pd.DataFrame([{
        'Nome': r['perfil']['nome'],
        'Frequência (%)': round(r['taxa_presenca'], 1),
        'Status': status_frequencia(r['taxa_presenca'])[0]
    } for r in resultados])

    cores = {texto: cor for _, texto, cor in FAIXAS_FREQUENCIA}
    fig = px.bar(df, x='Nome', y='Frequência (%)', color='Status',
                 color_discrete_map=cores, range_y=[0, 100])
    fig.add_hline(y=LIMITE_FREQUENCIA_BAIXA, line_dash='dash', line_color='gray')
    fig.update_layout(template='plotly_white', height=350, margin=dict(t=20, b=20))
    st.plotly_chart(fig, use_container_width=True)

    st.markdown("---")

    for resultado in resultados:
        render_card_frequencia(resultado)

def render_card_frequencia(resultado: dict):
    """Card de um membro no painel"""
    perfil = resultado['perfil']
    taxa = resultado['taxa_presenca']
    status, cor = status_frequencia(taxa)

    with st.container():
        col1, col2, col3 = st.columns([3, 2, 1])

        with col1:
            st.markdown(f"**{perfil['nome']}**")
            detalhes = nome_papel(perfil['papel'])
            if perfil.get('telefone'):
                detalhes += f" • 📞 {perfil['telefone']}"
            st.caption(detalhes)

        with col2:
            st.markdown(
                f"<span style='color: {cor}; font-weight: bold;'>● {status}</span> "
                f"<span style='font-size: 1.4rem; font-weight: bold;'>{formatar_percentual(taxa)}</span>",
                unsafe_allow_html=True
            )
            st.caption(f"{resultado['presencas']} de {resultado['total_reunioes']} reuniões")
            if resultado['ultima_presenca']:
                st.caption(f"Última: {formatar_data_br(resultado['ultima_presenca'])}")

        with col3:
            if precisa_atencao(taxa):
                link = gerar_link_contato(perfil)
                if link:
                    st.link_button("💬 WhatsApp", link, use_container_width=True)
                else:
                    st.caption("⚠️ Sem telefone cadastrado")

    st.markdown("<hr style='margin: 0.5rem 0; opacity: 0.2;'>", unsafe_allow_html=True)

def render_registro_frequencia():
    """Lista de presença de uma reunião"""
    usuario = get_usuario_atual()

    data_reuniao = st.date_input("Data da reunião", value=date.today(), format="DD/MM/YYYY")

    perfis = get_perfis()
    if not perfis:
        st.info("Nenhum membro cadastrado.")
        return

    atuais = get_frequencia_data(data_reuniao)

    with st.form(f"form_frequencia_{data_reuniao.isoformat()}"):
        st.markdown("### ✅ Lista de Presença")

        presencas = {}
        for perfil in perfis:
            presencas[perfil['usuario_id']] = st.checkbox(
                perfil['nome'],
                value=atuais.get(perfil['usuario_id'], False),
                key=f"pres_{data_reuniao.isoformat()}_{perfil['usuario_id']}"
            )

        if st.form_submit_button("💾 Salvar Frequência", use_container_width=True):
            try:
                registrar_frequencia(usuario, data_reuniao, presencas)
                st.success("✅ Frequência salva com sucesso!")
            except (PermissionError, ValueError) as e:
                st.error(str(e))
            except Exception as e:
                logger.exception("Erro ao salvar frequência")
                st.error(f"Erro ao salvar frequência: {e}")
