"""
Configurações do Tardezinha
"""
import os
import logging
from pathlib import Path
from datetime import datetime, date

# Função para formatar datas no padrão brasileiro
def formatar_data_br(data) -> str:
    """Formata uma data para o padrão brasileiro dd/mm/yyyy"""
    if data is None:
        return ""
    if isinstance(data, str):
        if not data:
            return ""
        # yyyy-mm-dd ou yyyy-mm-ddTHH:MM:SS -> dd/mm/yyyy
        partes = data.replace('T', ' ').split(' ')[0].split('-')
        if len(partes) == 3:
            return f"{partes[2]}/{partes[1]}/{partes[0]}"
        return data
    if isinstance(data, (datetime, date)):
        return data.strftime("%d/%m/%Y")
    return str(data)

def formatar_data_hora_br(data) -> str:
    """Formata data e hora no padrão dd/mm/yyyy às HH:MM"""
    if not data:
        return ""
    if isinstance(data, str):
        try:
            data = datetime.fromisoformat(data)
        except ValueError:
            return data
    return data.strftime("%d/%m/%Y às %H:%M")

# Diretórios
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("TARDEZINHA_DATA_DIR", BASE_DIR / "data"))
UPLOADS_DIR = DATA_DIR / "uploads"

# Criar diretórios se não existirem
DATA_DIR.mkdir(parents=True, exist_ok=True)
UPLOADS_DIR.mkdir(exist_ok=True)

# Banco de dados
DATABASE_PATH = Path(os.getenv("TARDEZINHA_DB", DATA_DIR / "tardezinha.db"))

# Storage (buckets)
STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", "").rstrip("/")
BUCKET_MIDIA = "media"
BUCKET_DEVOCIONAIS = "devocionais"

# Segurança
SECRET_KEY = os.getenv("SECRET_KEY", "sua-chave-secreta-aqui-mude-em-producao")
TAMANHO_MINIMO_SENHA = 6

# Líder criado na primeira execução
LIDER_NOME = os.getenv("LIDER_NOME", "Líder da Célula")
LIDER_EMAIL = os.getenv("LIDER_EMAIL", "lider@tardezinha.com")
LIDER_SENHA = os.getenv("LIDER_SENHA", "tardezinha123")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def configurar_logging():
    """Configura o logging da aplicação"""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT
    )

# Papéis de usuário (RBAC)
PAPEIS = {
    "lider": {
        "nome": "Líder",
        "permissoes": ["*"]  # Acesso total
    },
    "lider_treinamento": {
        "nome": "Líder em Treinamento",
        "permissoes": [
            "eventos.*",
            "frequencia.*",
            "usuarios.ver", "usuarios.criar", "usuarios.editar",
            "palavra.publicar",
            "publicacoes.publicar", "publicacoes.responder",
            "publicacoes.moderar",
            "logs.ver"
        ]
    },
    "membro": {
        "nome": "Membro",
        "permissoes": [
            "eventos.ver",
            "publicacoes.publicar", "publicacoes.responder"
        ]
    }
}

PAPEL_PADRAO = "membro"
PAPEIS_LIDERANCA = ("lider", "lider_treinamento")

# Frequência
JANELA_FREQUENCIA_DIAS = 60  # Painel de frequência dos líderes
JANELA_PAINEL_DIAS = 30      # Painel pessoal do membro
LIMITE_FREQUENCIA_BAIXA = 60
MAX_WORKERS_FREQUENCIA = int(os.getenv("MAX_WORKERS_FREQUENCIA", "4"))

# Faixas de status (limite mínimo, texto, cor)
FAIXAS_FREQUENCIA = [
    (80, "Excelente", "#22c55e"),
    (60, "Bom", "#eab308"),
    (40, "Regular", "#f97316"),
    (0, "Baixa", "#ef4444")
]

# Publicações
LIMITE_PEDIDO_ORACAO = 500
LIMITE_TESTEMUNHO = 1000
LIMITE_PALAVRA_DIA = 1000
TAGS_HTML_PERMITIDAS = ("strong", "em", "u", "br")

# Avatar
TAMANHO_MAXIMO_AVATAR = 5 * 1024 * 1024
LADO_AVATAR = 400
QUALIDADE_AVATAR = 90

# Mensagem de follow-up para membros com baixa frequência
MENSAGEM_WHATSAPP_FREQUENCIA = """Olá {nome}! 👋

Esperamos você na próxima reunião da célula! Sentimos sua falta. 🙏

Conte conosco para qualquer coisa!

Com carinho,
Equipe Tardezinha"""
