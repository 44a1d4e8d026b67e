import pytest

import database.db
from database.db import criar_lider_inicial, get_connection
from modules.auth import (
    autenticar_usuario, alterar_senha, registrar_log, get_logs_acesso,
    tem_permissao, eh_lider, exigir_permissao, validar_senha
)

def test_login_com_email_em_qualquer_caixa(lider):
    usuario = autenticar_usuario('  LIDER@teste.com ', 'senha123')

    assert usuario['usuario_id'] == lider['usuario_id']
    assert usuario['papel'] == 'lider'
    assert usuario['nome'] == 'Pastor João Silva'
    assert usuario['ultimo_acesso'] is not None

def test_login_senha_errada(lider):
    assert autenticar_usuario('lider@teste.com', 'errada') is None
    assert autenticar_usuario('ninguem@teste.com', 'senha123') is None

def test_login_registra_log(lider):
    autenticar_usuario('lider@teste.com', 'senha123')
    acoes = [log['acao'] for log in get_logs_acesso()]
    assert 'login' in acoes

def test_alterar_senha(membro):
    alterar_senha(membro['usuario_id'], 'nova-senha', 'nova-senha')

    assert autenticar_usuario('maria@teste.com', 'senha123') is None
    assert autenticar_usuario('maria@teste.com', 'nova-senha') is not None

def test_alterar_senha_confirmacao_diferente(membro):
    with pytest.raises(ValueError, match="não coincidem"):
        alterar_senha(membro['usuario_id'], 'nova-senha', 'outra-senha')

def test_validar_senha_minimo():
    validar_senha('123456')
    with pytest.raises(ValueError):
        validar_senha('12345')

def test_lider_inicial_so_no_banco_vazio(lider):
    assert criar_lider_inicial('Outro', 'outro@teste.com', 'senha123') is None
    with get_connection() as conn:
        assert conn.execute('SELECT COUNT(*) FROM usuarios').fetchone()[0] == 1

def test_permissoes_por_papel():
    lider = {'papel': 'lider'}
    treinamento = {'papel': 'lider_treinamento'}
    membro = {'papel': 'membro'}

    assert tem_permissao(lider, 'usuarios.excluir')
    assert tem_permissao(treinamento, 'eventos.excluir')
    assert tem_permissao(treinamento, 'frequencia.registrar')
    assert not tem_permissao(treinamento, 'usuarios.excluir')
    assert tem_permissao(membro, 'eventos.ver')
    assert tem_permissao(membro, 'publicacoes.publicar')
    assert not tem_permissao(membro, 'eventos.editar')
    assert not tem_permissao(membro, 'frequencia.ver')
    assert not tem_permissao(None, 'eventos.ver')
    assert not tem_permissao({'papel': 'visitante'}, 'eventos.ver')

def test_eh_lider():
    assert eh_lider({'papel': 'lider'})
    assert eh_lider({'papel': 'lider_treinamento'})
    assert not eh_lider({'papel': 'membro'})
    assert not eh_lider(None)

def test_exigir_permissao():
    exigir_permissao({'papel': 'lider'}, 'qualquer.coisa')
    with pytest.raises(PermissionError):
        exigir_permissao({'papel': 'membro'}, 'usuarios.criar')

def test_falha_no_log_nao_interrompe(tmp_path, monkeypatch):
    # Um diretório no lugar do arquivo faz o sqlite falhar ao abrir
    monkeypatch.setattr(database.db, 'DATABASE_PATH', tmp_path)
    registrar_log(1, 'teste', 'não deve levantar erro')
