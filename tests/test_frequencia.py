import threading
import time
import urllib.parse
from datetime import date, timedelta

import pytest

from database.db import get_connection
from modules.frequencia import (
    calcular_frequencia, agregar_frequencia, registrar_frequencia, get_frequencia_data,
    get_painel_frequencia, get_frequencia_pessoal, status_frequencia, precisa_atencao,
    formatar_percentual, normalizar_telefone, gerar_link_whatsapp, gerar_link_contato
)

HOJE = date(2024, 6, 30)

def _perfil(usuario_id, nome, telefone=None):
    return {'usuario_id': usuario_id, 'nome': nome, 'telefone': telefone, 'papel': 'membro'}

def _registro(data, presente):
    return {'data': data.isoformat(), 'presente': 1 if presente else 0}

# ==================== CÁLCULO ====================

def test_exemplo_tres_reunioes():
    d1, d2, d3 = date(2024, 6, 2), date(2024, 6, 9), date(2024, 6, 16)
    resultado = calcular_frequencia(_perfil(1, 'Maria'), [
        _registro(d1, True), _registro(d2, False), _registro(d3, True)
    ])

    assert resultado['total_reunioes'] == 3
    assert resultado['presencas'] == 2
    assert resultado['taxa_presenca'] == pytest.approx(66.67, abs=0.01)
    assert formatar_percentual(resultado['taxa_presenca']) == "67%"
    assert resultado['ultima_presenca'] == d3

def test_ultima_presenca_e_a_maior_data_independente_da_ordem():
    d1, d3 = date(2024, 6, 2), date(2024, 6, 16)
    resultado = calcular_frequencia(_perfil(1, 'Maria'), [
        _registro(d3, True), _registro(date(2024, 6, 20), False), _registro(d1, True)
    ])
    assert resultado['ultima_presenca'] == d3

def test_sem_registros_taxa_zero():
    resultado = calcular_frequencia(_perfil(1, 'Maria'), [])
    assert resultado['total_reunioes'] == 0
    assert resultado['presencas'] == 0
    assert resultado['taxa_presenca'] == 0
    assert resultado['ultima_presenca'] is None

def test_so_faltas_sem_ultima_presenca():
    resultado = calcular_frequencia(_perfil(1, 'Maria'), [_registro(HOJE, False)])
    assert resultado['taxa_presenca'] == 0
    assert resultado['ultima_presenca'] is None

@pytest.mark.parametrize('taxa,esperado', [
    (100, 'Excelente'), (80, 'Excelente'), (79.9, 'Bom'), (60, 'Bom'),
    (59.9, 'Regular'), (40, 'Regular'), (39.9, 'Baixa'), (0, 'Baixa')
])
def test_faixas_de_status(taxa, esperado):
    assert status_frequencia(taxa)[0] == esperado

@pytest.mark.parametrize('presentes,total,esperado', [
    (5, 8, '63%'), (1, 8, '13%'), (3, 8, '38%'), (7, 8, '88%'),
    (1, 16, '6%'), (0, 8, '0%'), (8, 8, '100%'), (1, 3, '33%')
])
def test_percentual_arredonda_meio_para_cima(presentes, total, esperado):
    registros = [_registro(HOJE - timedelta(days=7 * i), i < presentes) for i in range(total)]
    resultado = calcular_frequencia(_perfil(1, 'Maria'), registros)
    assert formatar_percentual(resultado['taxa_presenca']) == esperado

def test_limite_de_atencao():
    assert precisa_atencao(59.99)
    assert precisa_atencao(0)
    assert not precisa_atencao(60)
    assert not precisa_atencao(100)

# ==================== AGREGAÇÃO ====================

def test_agregacao_ordena_da_menor_para_a_maior_taxa():
    perfis = [_perfil(1, 'Ana'), _perfil(2, 'Bruno'), _perfil(3, 'Carla'), _perfil(4, 'Davi')]
    registros = {
        1: [_registro(HOJE, True)],
        2: [_registro(HOJE, False), _registro(HOJE - timedelta(days=7), True)],
        3: [],
        4: [_registro(HOJE, False)],
    }

    resultados, falhas = agregar_frequencia(perfis, hoje=HOJE, buscar=lambda uid, desde: registros[uid])

    assert falhas == []
    taxas = [r['taxa_presenca'] for r in resultados]
    assert taxas == sorted(taxas)
    # Empate em 0%: mantém a ordem por nome
    assert [r['perfil']['nome'] for r in resultados] == ['Carla', 'Davi', 'Bruno', 'Ana']
    for r in resultados:
        assert 0 <= r['taxa_presenca'] <= 100
        assert r['presencas'] <= r['total_reunioes']

def test_agregacao_usa_a_janela_informada():
    chamadas = []

    def buscar(usuario_id, desde):
        chamadas.append(desde)
        return []

    agregar_frequencia([_perfil(1, 'Ana')], dias=60, hoje=HOJE, buscar=buscar)
    assert chamadas == [HOJE - timedelta(days=60)]

def test_falha_parcial_nao_interrompe_a_agregacao():
    perfis = [_perfil(1, 'Ana'), _perfil(2, 'Bruno'), _perfil(3, 'Carla')]

    def buscar(usuario_id, desde):
        if usuario_id == 2:
            raise RuntimeError("conexão perdida")
        return [_registro(HOJE, True)]

    resultados, falhas = agregar_frequencia(perfis, hoje=HOJE, buscar=buscar)

    assert [r['perfil']['usuario_id'] for r in resultados] == [1, 3]
    assert len(falhas) == 1
    assert falhas[0]['perfil']['nome'] == 'Bruno'
    assert 'conexão perdida' in falhas[0]['erro']

def test_agregacao_respeita_o_limite_de_workers():
    ativos = 0
    maximo = 0
    lock = threading.Lock()

    def buscar(usuario_id, desde):
        nonlocal ativos, maximo
        with lock:
            ativos += 1
            maximo = max(maximo, ativos)
        time.sleep(0.02)
        with lock:
            ativos -= 1
        return []

    perfis = [_perfil(i, f'Membro {i}') for i in range(10)]
    resultados, _ = agregar_frequencia(perfis, hoje=HOJE, buscar=buscar, max_workers=2)

    assert len(resultados) == 10
    assert maximo <= 2

def test_agregacao_sem_perfis():
    assert agregar_frequencia([], hoje=HOJE) == ([], [])

# ==================== REGISTRO (BANCO) ====================

def test_registrar_frequencia_e_idempotente(lider, membro):
    dia = date.today() - timedelta(days=3)
    presencas = {lider['usuario_id']: True, membro['usuario_id']: False}

    assert registrar_frequencia(lider, dia, presencas) == 2
    registrar_frequencia(lider, dia, presencas)

    with get_connection() as conn:
        total = conn.execute('SELECT COUNT(*) FROM frequencia WHERE data = ?', (dia.isoformat(),)).fetchone()[0]
    assert total == 2
    assert get_frequencia_data(dia) == presencas

def test_registrar_frequencia_atualiza_presenca(lider, membro):
    dia = date.today()
    registrar_frequencia(lider, dia, {membro['usuario_id']: False})
    registrar_frequencia(lider, dia, {membro['usuario_id']: True})

    assert get_frequencia_data(dia) == {membro['usuario_id']: True}

def test_membro_nao_registra_frequencia(membro):
    with pytest.raises(PermissionError):
        registrar_frequencia(membro, date.today(), {membro['usuario_id']: True})

def test_lider_em_treinamento_registra_frequencia(lider_treinamento, membro):
    assert registrar_frequencia(lider_treinamento, date.today(), {membro['usuario_id']: True}) == 1

def test_painel_ignora_registros_fora_da_janela(lider, membro):
    hoje = date.today()
    registrar_frequencia(lider, hoje - timedelta(days=90), {membro['usuario_id']: True})
    registrar_frequencia(lider, hoje - timedelta(days=10), {membro['usuario_id']: False})
    registrar_frequencia(lider, hoje - timedelta(days=3), {membro['usuario_id']: True, lider['usuario_id']: True})

    resultados, falhas = get_painel_frequencia(dias=60)

    assert falhas == []
    por_nome = {r['perfil']['nome']: r for r in resultados}
    assert por_nome['Maria Souza']['total_reunioes'] == 2
    assert por_nome['Maria Souza']['taxa_presenca'] == 50
    assert por_nome['Pastor João Silva']['taxa_presenca'] == 100
    assert resultados[0]['perfil']['nome'] == 'Maria Souza'

def test_frequencia_pessoal_trinta_dias(lider, membro):
    hoje = date.today()
    registrar_frequencia(lider, hoje - timedelta(days=45), {membro['usuario_id']: True})
    registrar_frequencia(lider, hoje - timedelta(days=5), {membro['usuario_id']: False})

    resultado = get_frequencia_pessoal(membro, 30)
    assert resultado['total_reunioes'] == 1
    assert resultado['taxa_presenca'] == 0

def test_so_quem_esta_abaixo_de_sessenta_recebe_contato(lider, membro, outro_membro):
    hoje = date.today()
    for dias_atras, presente in [(3, True), (10, True), (17, False)]:
        registrar_frequencia(lider, hoje - timedelta(days=dias_atras), {
            membro['usuario_id']: False,
            outro_membro['usuario_id']: presente,
        })

    resultados, _ = get_painel_frequencia()
    com_contato = {r['perfil']['nome'] for r in resultados if precisa_atencao(r['taxa_presenca'])}

    assert 'Maria Souza' in com_contato
    assert 'Carlos Lima' not in com_contato

# ==================== WHATSAPP ====================

def test_normalizar_telefone_remove_nono_digito_e_adiciona_ddi():
    assert normalizar_telefone('(11) 98765-4321') == '551187654321'
    assert normalizar_telefone('11 8765-4321') == '551187654321'

def test_normalizar_telefone_com_ddi_nao_muda():
    assert normalizar_telefone('+55 11 98765-4321') == '5511987654321'

def test_normalizar_telefone_vazio():
    assert normalizar_telefone('') == ''
    assert normalizar_telefone(None) == ''

def test_link_whatsapp_codifica_a_mensagem():
    link = gerar_link_whatsapp('(11) 98765-4321', 'Olá Maria!')
    assert link == 'https://wa.me/551187654321?text=' + urllib.parse.quote('Olá Maria!')

def test_link_whatsapp_sem_telefone():
    assert gerar_link_whatsapp(None, 'Oi') is None

def test_link_de_contato_usa_a_mensagem_padrao():
    link = gerar_link_contato(_perfil(1, 'Maria', '11987654321'))
    texto = urllib.parse.unquote(link.split('?text=')[1])
    assert texto.startswith('Olá Maria!')
    assert texto.endswith('Equipe Tardezinha')
