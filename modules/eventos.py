"""
Módulo de Eventos
Calendário da célula; criação e edição restritas à liderança
"""
import html
import logging
from datetime import datetime, date, time, timedelta
import streamlit as st
from database.db import get_connection
from modules.auth import get_usuario_atual, registrar_log, exigir_permissao, tem_permissao
from modules.notificacoes import notificar_todos
from config.settings import formatar_data_br, formatar_data_hora_br

logger = logging.getLogger(__name__)

MESES = ['Janeiro', 'Fevereiro', 'Março', 'Abril', 'Maio', 'Junho',
         'Julho', 'Agosto', 'Setembro', 'Outubro', 'Novembro', 'Dezembro']

# ==================== FUNÇÕES DE DADOS ====================

def _como_datahora(valor) -> datetime:
    if isinstance(valor, datetime):
        return valor
    if isinstance(valor, date):
        return datetime.combine(valor, time(0, 0))
    return datetime.fromisoformat(str(valor))

def _preparar_evento(row) -> dict:
    evento = dict(row)
    evento['passado'] = _como_datahora(evento['data_evento']) < datetime.now()
    return evento

def get_eventos(data_inicio: date = None, data_fim: date = None) -> list:
    """Eventos em ordem de data, opcionalmente dentro de um intervalo de dias"""
    query = '''
        SELECT e.*, p.nome as criador_nome
        FROM eventos e
        LEFT JOIN perfis p ON p.usuario_id = e.criado_por
        WHERE 1 = 1
    '''
    params = []

    if data_inicio:
        query += ' AND date(e.data_evento) >= ?'
        params.append(data_inicio.isoformat())
    if data_fim:
        query += ' AND date(e.data_evento) <= ?'
        params.append(data_fim.isoformat())

    query += ' ORDER BY e.data_evento ASC, e.id ASC'

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(query, params)
        return [_preparar_evento(row) for row in cursor.fetchall()]

def get_evento(evento_id: int) -> dict | None:
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('SELECT * FROM eventos WHERE id = ?', (evento_id,))
        row = cursor.fetchone()
        return _preparar_evento(row) if row else None

def get_proximos_eventos(limite: int = 3, hoje: date = None) -> list:
    """Próximos eventos a partir de hoje"""
    hoje = hoje or date.today()
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT * FROM eventos
            WHERE date(data_evento) >= ?
            ORDER BY data_evento ASC, id ASC
            LIMIT ?
        ''', (hoje.isoformat(), limite))
        return [_preparar_evento(row) for row in cursor.fetchall()]

def get_eventos_do_dia(dia: date) -> list:
    return get_eventos(dia, dia)

def get_eventos_mes(ano: int, mes: int) -> dict:
    """Eventos do mês agrupados por dia (yyyy-mm-dd)"""
    inicio = date(ano, mes, 1)
    fim = (date(ano + 1, 1, 1) if mes == 12 else date(ano, mes + 1, 1)) - timedelta(days=1)

    eventos_por_dia = {}
    for evento in get_eventos(inicio, fim):
        eventos_por_dia.setdefault(str(evento['data_evento'])[:10], []).append(evento)
    return eventos_por_dia

def _validar_evento(dados: dict) -> tuple:
    titulo = (dados.get('titulo') or '').strip()
    if not titulo:
        raise ValueError("O título é obrigatório.")
    if not dados.get('data_evento'):
        raise ValueError("A data do evento é obrigatória.")
    data_evento = _como_datahora(dados['data_evento']).isoformat(sep=' ', timespec='minutes')
    return titulo, (dados.get('descricao') or '').strip() or None, data_evento

def salvar_evento(usuario: dict, dados: dict) -> int:
    """Cria (e avisa os demais membros) ou atualiza um evento"""
    exigir_permissao(usuario, 'eventos.editar')
    titulo, descricao, data_evento = _validar_evento(dados)

    with get_connection() as conn:
        cursor = conn.cursor()

        if dados.get('id'):
            cursor.execute('''
                UPDATE eventos
                SET titulo = ?, descricao = ?, data_evento = ?, data_atualizacao = ?
                WHERE id = ?
            ''', (titulo, descricao, data_evento,
                  datetime.now().isoformat(sep=' ', timespec='seconds'), dados['id']))
            if cursor.rowcount == 0:
                raise ValueError("Evento não encontrado.")
            evento_id = dados['id']
        else:
            cursor.execute('''
                INSERT INTO eventos (titulo, descricao, data_evento, criado_por)
                VALUES (?, ?, ?, ?)
            ''', (titulo, descricao, data_evento, usuario['usuario_id']))
            evento_id = cursor.lastrowid

    if dados.get('id'):
        registrar_log(usuario['usuario_id'], 'eventos.editar', f"Evento atualizado: {titulo}")
    else:
        avisados = notificar_todos(
            f"Novo evento: {titulo}",
            f"{formatar_data_hora_br(data_evento)}" + (f" • {descricao}" if descricao else ""),
            tipo='evento',
            exceto=usuario['usuario_id']
        )
        logger.info("Evento %s criado; %d membros notificados", evento_id, avisados)
        registrar_log(usuario['usuario_id'], 'eventos.criar', f"Evento criado: {titulo}")

    return evento_id

def excluir_evento(usuario: dict, evento_id: int) -> bool:
    exigir_permissao(usuario, 'eventos.excluir')

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('DELETE FROM eventos WHERE id = ?', (evento_id,))
        excluido = cursor.rowcount > 0

    if excluido:
        registrar_log(usuario['usuario_id'], 'eventos.excluir', f"Evento {evento_id} excluído")
    return excluido

# ==================== RENDERIZAÇÃO ====================

def render_eventos():
    """Função principal do módulo de eventos"""
    st.title("📅 Eventos")
    usuario = get_usuario_atual()

    abas = ["📆 Calendário", "📋 Próximos"]
    if tem_permissao(usuario, 'eventos.editar'):
        abas.append("➕ Novo Evento")
    tabs = st.tabs(abas)

    with tabs[0]:
        render_calendario()

    with tabs[1]:
        render_lista_eventos()

    if len(tabs) > 2:
        with tabs[2]:
            render_form_evento()

def render_calendario():
    """Calendário mensal com os eventos do dia selecionado"""
    col1, col2, col3 = st.columns([1, 2, 1])

    if 'mes_atual' not in st.session_state:
        st.session_state.mes_atual = date.today().replace(day=1)

    with col1:
        if st.button("◀️ Anterior"):
            st.session_state.mes_atual = (st.session_state.mes_atual - timedelta(days=1)).replace(day=1)
            st.rerun()

    with col2:
        mes_atual = st.session_state.mes_atual
        st.markdown(f"<h3 style='text-align: center;'>{MESES[mes_atual.month - 1]} {mes_atual.year}</h3>",
                    unsafe_allow_html=True)

    with col3:
        if st.button("Próximo ▶️"):
            st.session_state.mes_atual = (st.session_state.mes_atual + timedelta(days=32)).replace(day=1)
            st.rerun()

    mes_inicio = st.session_state.mes_atual
    eventos_por_dia = get_eventos_mes(mes_inicio.year, mes_inicio.month)
    proximo_mes = (mes_inicio + timedelta(days=32)).replace(day=1)
    total_dias = (proximo_mes - timedelta(days=1)).day

    dias_semana = ['Dom', 'Seg', 'Ter', 'Qua', 'Qui', 'Sex', 'Sáb']
    cols = st.columns(7)
    for i, dia in enumerate(dias_semana):
        cols[i].markdown(f"<div style='text-align: center; font-weight: bold;'>{dia}</div>",
                         unsafe_allow_html=True)

    # Domingo = 0
    dia_semana_inicio = (mes_inicio.weekday() + 1) % 7
    dia_atual = 1
    semana = 0
    while dia_atual <= total_dias:
        cols = st.columns(7)
        for i in range(7):
            if (semana == 0 and i < dia_semana_inicio) or dia_atual > total_dias:
                cols[i].write("")
                continue

            dia = date(mes_inicio.year, mes_inicio.month, dia_atual)
            eventos_dia = eventos_por_dia.get(dia.isoformat(), [])
            rotulo = f"{dia_atual} •" if eventos_dia else str(dia_atual)
            tipo = "primary" if dia == st.session_state.get('dia_selecionado') else "secondary"
            if cols[i].button(rotulo, key=f"dia_{dia.isoformat()}", type=tipo, use_container_width=True):
                st.session_state.dia_selecionado = dia
                st.rerun()
            dia_atual += 1
        semana += 1

    dia_selecionado = st.session_state.get('dia_selecionado', date.today())
    st.markdown(f"### Eventos de {formatar_data_br(dia_selecionado)}")

    eventos = get_eventos_do_dia(dia_selecionado)
    if not eventos:
        st.info("Nenhum evento neste dia.")
    for evento in eventos:
        render_card_evento(evento, "calendario")

def render_lista_eventos():
    """Eventos a partir de hoje"""
    eventos = get_eventos(data_inicio=date.today())
    if not eventos:
        st.info("Nenhum evento agendado.")
        return
    for evento in eventos:
        render_card_evento(evento, "lista")

def render_card_evento(evento: dict, contexto: str):
    """Card de um evento, com edição para a liderança"""
    usuario = get_usuario_atual()
    opacidade = "0.6" if evento['passado'] else "1"

    st.markdown(f"""
        <div style='background: #fff7ed; padding: 0.8rem; border-radius: 10px;
                    border-left: 4px solid #f97316; margin-bottom: 0.5rem; opacity: {opacidade};'>
            <strong>{html.escape(evento['titulo'])}</strong><br>
            <small>🕐 {formatar_data_hora_br(evento['data_evento'])}</small>
            {f"<p style='margin: 0.3rem 0 0 0;'>{html.escape(evento['descricao'])}</p>" if evento.get('descricao') else ""}
        </div>
    """, unsafe_allow_html=True)

    if tem_permissao(usuario, 'eventos.editar'):
        with st.expander("✏️ Editar", expanded=False):
            render_form_evento(evento, contexto)

def render_form_evento(evento: dict = None, contexto: str = "novo"):
    """Formulário de criação/edição de evento"""
    usuario = get_usuario_atual()
    chave = f"form_evento_{contexto}_{evento['id']}" if evento else "form_evento_novo"
    atual = _como_datahora(evento['data_evento']) if evento else None

    with st.form(chave, clear_on_submit=evento is None):
        titulo = st.text_input("Título *", value=evento['titulo'] if evento else "")
        col1, col2 = st.columns(2)
        with col1:
            dia = st.date_input("Data *", value=atual.date() if atual else date.today(), format="DD/MM/YYYY")
        with col2:
            hora = st.time_input("Horário", value=atual.time() if atual else time(19, 30))
        descricao = st.text_area("Descrição", value=(evento.get('descricao') or '') if evento else "")

        col1, col2 = st.columns(2)
        with col1:
            salvar = st.form_submit_button("💾 Salvar", use_container_width=True)
        with col2:
            excluir = evento is not None and st.form_submit_button("🗑️ Excluir", use_container_width=True)

        if salvar:
            try:
                salvar_evento(usuario, {
                    'id': evento['id'] if evento else None,
                    'titulo': titulo,
                    'descricao': descricao,
                    'data_evento': datetime.combine(dia, hora)
                })
                st.success("✅ Evento salvo com sucesso!")
                st.rerun()
            except (PermissionError, ValueError) as e:
                st.error(str(e))

        if excluir:
            try:
                excluir_evento(usuario, evento['id'])
                st.success("Evento excluído.")
                st.rerun()
            except PermissionError as e:
                st.error(str(e))
