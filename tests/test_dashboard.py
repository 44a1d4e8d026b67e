from datetime import date, datetime, timedelta

from modules.dashboard import get_resumo_dashboard
from modules.eventos import salvar_evento
from modules.frequencia import registrar_frequencia
from modules.palavra_dia import publicar_palavra

def test_resumo_do_painel(lider, lider_treinamento, membro):
    hoje = date.today()
    registrar_frequencia(lider, hoje - timedelta(days=40), {membro['usuario_id']: False})
    registrar_frequencia(lider, hoje - timedelta(days=14), {membro['usuario_id']: True})
    registrar_frequencia(lider, hoje - timedelta(days=7), {membro['usuario_id']: False})
    registrar_frequencia(lider, hoje - timedelta(days=1), {membro['usuario_id']: True})

    amanha = datetime.combine(hoje + timedelta(days=1), datetime.min.time())
    for i in range(4):
        salvar_evento(lider, {'titulo': f'Evento {i}', 'data_evento': amanha + timedelta(days=i)})

    publicar_palavra(lider, 'Antiga', 'texto')
    publicar_palavra(lider_treinamento, 'Atual', 'texto')

    resumo = get_resumo_dashboard(membro)

    frequencia = resumo['frequencia']
    assert frequencia['total_reunioes'] == 3
    assert frequencia['presencas'] == 2
    assert frequencia['faltas'] == 1
    assert round(frequencia['taxa_presenca']) == 67

    assert {p['nome'] for p in resumo['lideranca']} == {'Pastor João Silva', 'Ana Costa'}
    assert [e['titulo'] for e in resumo['proximos_eventos']] == ['Evento 0', 'Evento 1', 'Evento 2']
    assert resumo['palavra']['titulo'] == 'Atual'

def test_resumo_sem_dados(membro):
    resumo = get_resumo_dashboard(membro)

    assert resumo['frequencia']['taxa_presenca'] == 0
    assert resumo['frequencia']['faltas'] == 0
    assert resumo['proximos_eventos'] == []
    assert resumo['palavra'] is None
