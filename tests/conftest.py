"""
Fixtures comuns: banco SQLite e pasta de uploads temporários por teste
"""
import bcrypt
import pytest

import database.db
from database.db import init_database, criar_lider_inicial
from modules import storage
from modules.auth import carregar_usuario
from modules.perfis import criar_usuario

@pytest.fixture(autouse=True)
def bcrypt_rapido(monkeypatch):
    gensalt = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, 'gensalt', lambda rounds=4, prefix=b'2b': gensalt(rounds, prefix))

@pytest.fixture
def db(tmp_path, monkeypatch):
    caminho = tmp_path / 'tardezinha_teste.db'
    monkeypatch.setattr(database.db, 'DATABASE_PATH', caminho)
    monkeypatch.setattr(storage, 'UPLOADS_DIR', tmp_path / 'uploads')
    monkeypatch.setattr(storage, 'STORAGE_PUBLIC_URL', '')
    init_database()
    return caminho

@pytest.fixture
def lider(db):
    usuario_id = criar_lider_inicial('Pastor João Silva', 'lider@teste.com', 'senha123')
    return carregar_usuario(usuario_id)

@pytest.fixture
def criar_membro(lider):
    """Cria um usuário com o papel informado e retorna o dicionário de sessão"""
    def _criar(nome, email, papel='membro', telefone=None, idade=None):
        usuario_id = criar_usuario(lider, {
            'nome': nome,
            'email': email,
            'senha': 'senha123',
            'confirmar_senha': 'senha123',
            'papel': papel,
            'telefone': telefone,
            'idade': idade
        })
        return carregar_usuario(usuario_id)
    return _criar

@pytest.fixture
def membro(criar_membro):
    return criar_membro('Maria Souza', 'maria@teste.com', telefone='(11) 98765-4321')

@pytest.fixture
def outro_membro(criar_membro):
    return criar_membro('Carlos Lima', 'carlos@teste.com')

@pytest.fixture
def lider_treinamento(criar_membro):
    return criar_membro('Ana Costa', 'ana@teste.com', papel='lider_treinamento', idade=32)
