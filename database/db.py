"""
Configuração e gerenciamento do banco de dados SQLite
"""
import sqlite3
import logging
from contextlib import contextmanager
import bcrypt
from cryptography.fernet import Fernet, InvalidToken
import base64
import hashlib

from config.settings import DATABASE_PATH, SECRET_KEY, LIDER_NOME, LIDER_EMAIL, LIDER_SENHA

logger = logging.getLogger(__name__)

def get_encryption_key():
    """Gera chave de criptografia baseada na SECRET_KEY"""
    key = hashlib.sha256(SECRET_KEY.encode()).digest()
    return base64.urlsafe_b64encode(key)

FERNET = Fernet(get_encryption_key())

def encrypt_data(data: str) -> str:
    """Criptografa dados sensíveis"""
    if not data:
        return data
    return FERNET.encrypt(data.encode()).decode()

def decrypt_data(data: str) -> str:
    """Descriptografa dados sensíveis"""
    if not data:
        return data
    try:
        return FERNET.decrypt(data.encode()).decode()
    except InvalidToken:
        logger.warning("Dado criptografado com chave diferente; retornando valor bruto")
        return data

@contextmanager
def get_connection():
    """Context manager para conexão com o banco"""
    conn = sqlite3.connect(DATABASE_PATH, timeout=30.0, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    # WAL permite leituras concorrentes durante o cálculo de frequência
    conn.execute('PRAGMA journal_mode=WAL')
    conn.execute('PRAGMA busy_timeout=30000')
    conn.execute('PRAGMA foreign_keys=ON')
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

def init_database():
    """Inicializa o banco de dados com todas as tabelas"""
    with get_connection() as conn:
        cursor = conn.cursor()

        # ========================================
        # AUTENTICAÇÃO E PERFIS
        # ========================================
        # Datas padrão no horário local, o mesmo de datetime.now() nos módulos

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS usuarios (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                senha_hash TEXT NOT NULL,
                ativo INTEGER DEFAULT 1,
                ultimo_acesso TIMESTAMP,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime'))
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS perfis (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                usuario_id INTEGER NOT NULL UNIQUE,
                nome TEXT NOT NULL,
                email TEXT NOT NULL,
                telefone TEXT,
                endereco_criptografado TEXT,
                idade INTEGER,
                data_nascimento DATE,
                avatar_url TEXT,
                papel TEXT NOT NULL DEFAULT 'membro'
                    CHECK (papel IN ('membro', 'lider_treinamento', 'lider')),
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                data_atualizacao TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                FOREIGN KEY (usuario_id) REFERENCES usuarios(id) ON DELETE CASCADE
            )
        ''')

        # Logs de acesso
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS logs_acesso (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                usuario_id INTEGER,
                acao TEXT NOT NULL,
                detalhes TEXT,
                data_hora TIMESTAMP DEFAULT (datetime('now', 'localtime'))
            )
        ''')

        # ========================================
        # EVENTOS E FREQUÊNCIA
        # ========================================

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS eventos (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                titulo TEXT NOT NULL,
                descricao TEXT,
                data_evento TIMESTAMP NOT NULL,
                criado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                data_atualizacao TIMESTAMP DEFAULT (datetime('now', 'localtime'))
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS frequencia (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                usuario_id INTEGER NOT NULL,
                data DATE NOT NULL,
                presente INTEGER NOT NULL DEFAULT 0,
                registrado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                UNIQUE (usuario_id, data),
                FOREIGN KEY (usuario_id) REFERENCES usuarios(id) ON DELETE CASCADE
            )
        ''')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_frequencia_data ON frequencia (data)')

        # ========================================
        # PUBLICAÇÕES
        # ========================================

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS pedidos_oracao (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                titulo TEXT NOT NULL,
                conteudo TEXT NOT NULL,
                anonimo INTEGER DEFAULT 0,
                criado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                data_atualizacao TIMESTAMP DEFAULT (datetime('now', 'localtime'))
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS respostas_oracao (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                pedido_id INTEGER NOT NULL,
                conteudo TEXT NOT NULL,
                criado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                FOREIGN KEY (pedido_id) REFERENCES pedidos_oracao(id) ON DELETE CASCADE
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS testemunhos (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                titulo TEXT NOT NULL,
                conteudo TEXT,
                anonimo INTEGER DEFAULT 0,
                midia_url TEXT,
                tipo_midia TEXT DEFAULT 'texto',
                criado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                data_atualizacao TIMESTAMP DEFAULT (datetime('now', 'localtime'))
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS respostas_testemunho (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                testemunho_id INTEGER NOT NULL,
                conteudo TEXT NOT NULL,
                criado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                FOREIGN KEY (testemunho_id) REFERENCES testemunhos(id) ON DELETE CASCADE
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS palavra_dia (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                titulo TEXT NOT NULL,
                conteudo TEXT NOT NULL,
                criado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                data_atualizacao TIMESTAMP DEFAULT (datetime('now', 'localtime'))
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS devocionais (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                titulo TEXT NOT NULL,
                conteudo TEXT NOT NULL,
                imagem_url TEXT,
                imagem_caminho TEXT,
                criado_por INTEGER NOT NULL,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                data_atualizacao TIMESTAMP DEFAULT (datetime('now', 'localtime'))
            )
        ''')

        # ========================================
        # NOTIFICAÇÕES
        # ========================================

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS notificacoes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                usuario_id INTEGER NOT NULL,
                tipo TEXT DEFAULT 'sistema',
                titulo TEXT NOT NULL,
                descricao TEXT,
                lida INTEGER DEFAULT 0,
                data_cadastro TIMESTAMP DEFAULT (datetime('now', 'localtime')),
                FOREIGN KEY (usuario_id) REFERENCES usuarios(id) ON DELETE CASCADE
            )
        ''')

    logger.info("Banco de dados inicializado em %s", DATABASE_PATH)

def criar_lider_inicial(nome: str = LIDER_NOME, email: str = LIDER_EMAIL, senha: str = LIDER_SENHA):
    """Cria o primeiro líder quando o banco ainda não tem usuários"""
    with get_connection() as conn:
        cursor = conn.cursor()

        cursor.execute('SELECT COUNT(*) FROM usuarios')
        if cursor.fetchone()[0] > 0:
            return None

        senha_hash = bcrypt.hashpw(senha.encode(), bcrypt.gensalt()).decode()
        cursor.execute('''
            INSERT INTO usuarios (email, senha_hash) VALUES (?, ?)
        ''', (email, senha_hash))
        usuario_id = cursor.lastrowid

        cursor.execute('''
            INSERT INTO perfis (usuario_id, nome, email, papel)
            VALUES (?, ?, ?, 'lider')
        ''', (usuario_id, nome, email))

    logger.info("Líder inicial criado: %s", email)
    return usuario_id
