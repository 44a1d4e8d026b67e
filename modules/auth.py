"""
Sistema de Autenticação e Controle de Acesso (RBAC)
"""
import logging
from datetime import datetime
import streamlit as st
import bcrypt
from database.db import get_connection
from config.settings import PAPEIS, PAPEIS_LIDERANCA, TAMANHO_MINIMO_SENHA

logger = logging.getLogger(__name__)

def verificar_senha(senha: str, senha_hash: str) -> bool:
    """Verifica se a senha está correta"""
    return bcrypt.checkpw(senha.encode(), senha_hash.encode())

def hash_senha(senha: str) -> str:
    """Gera hash da senha"""
    return bcrypt.hashpw(senha.encode(), bcrypt.gensalt()).decode()

def validar_senha(senha: str, confirmacao: str = None):
    """Valida regras mínimas de senha"""
    if not senha or len(senha) < TAMANHO_MINIMO_SENHA:
        raise ValueError(f"A senha deve ter pelo menos {TAMANHO_MINIMO_SENHA} caracteres.")
    if confirmacao is not None and senha != confirmacao:
        raise ValueError("As senhas não coincidem.")

def carregar_usuario(usuario_id: int) -> dict | None:
    """Busca os dados de sessão de um usuário (conta + perfil)"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT u.id as usuario_id, u.email, u.ultimo_acesso,
                   p.id as perfil_id, p.nome, p.telefone, p.avatar_url, p.papel
            FROM usuarios u
            JOIN perfis p ON p.usuario_id = u.id
            WHERE u.id = ? AND u.ativo = 1
        ''', (usuario_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

def autenticar_usuario(email: str, senha: str) -> dict | None:
    """Autentica um usuário e retorna seus dados"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT id, senha_hash FROM usuarios
            WHERE email = ? AND ativo = 1
        ''', (email.strip().lower(),))
        conta = cursor.fetchone()

        if not conta or not verificar_senha(senha, conta['senha_hash']):
            logger.info("Falha de login para %s", email)
            return None

        cursor.execute('''
            UPDATE usuarios SET ultimo_acesso = ? WHERE id = ?
        ''', (datetime.now().isoformat(timespec='seconds'), conta['id']))

    registrar_log(conta['id'], 'login', 'Login realizado com sucesso')
    return carregar_usuario(conta['id'])

def alterar_senha(usuario_id: int, nova_senha: str, confirmacao: str):
    """Altera a senha da conta"""
    validar_senha(nova_senha, confirmacao)

    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE usuarios SET senha_hash = ? WHERE id = ?
        ''', (hash_senha(nova_senha), usuario_id))

    registrar_log(usuario_id, 'conta.senha', 'Senha alterada')

def registrar_log(usuario_id: int, acao: str, detalhes: str = None):
    """Registra um log de acesso/ação"""
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO logs_acesso (usuario_id, acao, detalhes)
                VALUES (?, ?, ?)
            ''', (usuario_id, acao, detalhes))
    except Exception:
        # Falha no log não bloqueia a operação principal
        logger.exception("Erro ao registrar log (%s)", acao)

def get_logs_acesso(limite: int = 100) -> list:
    """Busca os logs mais recentes"""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT l.*, p.nome as usuario_nome
            FROM logs_acesso l
            LEFT JOIN perfis p ON p.usuario_id = l.usuario_id
            ORDER BY l.data_hora DESC, l.id DESC
            LIMIT ?
        ''', (limite,))
        return [dict(row) for row in cursor.fetchall()]

def tem_permissao(usuario: dict, permissao: str) -> bool:
    """Verifica se o usuário tem uma determinada permissão"""
    if not usuario:
        return False

    papel = usuario.get('papel', '')
    if papel not in PAPEIS:
        return False

    permissoes = PAPEIS[papel]['permissoes']

    # Líder tem acesso total
    if '*' in permissoes:
        return True

    if permissao in permissoes:
        return True

    # Curinga por módulo (ex: "eventos.*")
    modulo = permissao.split('.')[0]
    return f"{modulo}.*" in permissoes

def eh_lider(usuario: dict) -> bool:
    """Líderes e líderes em treinamento"""
    return bool(usuario) and usuario.get('papel') in PAPEIS_LIDERANCA

def exigir_permissao(usuario: dict, permissao: str):
    """Levanta PermissionError quando o usuário não tem a permissão"""
    if not tem_permissao(usuario, permissao):
        raise PermissionError("Você não tem permissão para realizar esta ação.")

def requer_permissao(permissao: str):
    """Decorator para verificar permissão antes de renderizar uma página"""
    def decorator(func):
        def wrapper(*args, **kwargs):
            if not st.session_state.get('usuario'):
                st.error("⚠️ Você precisa estar logado para acessar esta página.")
                st.stop()

            if not tem_permissao(st.session_state.usuario, permissao):
                st.error("🚫 Acesso restrito a líderes.")
                st.stop()

            return func(*args, **kwargs)
        return wrapper
    return decorator

def login_page():
    """Página de login"""
    col1, col2, col3 = st.columns([1, 2, 1])

    with col2:
        st.markdown("## 🌅 Tardezinha")
        st.markdown("### Entrar")

        with st.form("login_form"):
            email = st.text_input("📧 E-mail", placeholder="seu@email.com")
            senha = st.text_input("🔒 Senha", type="password", placeholder="Sua senha")

            submit = st.form_submit_button("🚀 Entrar", use_container_width=True)

            if submit:
                if not email or not senha:
                    st.error("Preencha todos os campos!")
                else:
                    usuario = autenticar_usuario(email, senha)
                    if usuario:
                        st.session_state.usuario = usuario
                        st.success("✅ Login realizado com sucesso!")
                        st.rerun()
                    else:
                        st.error("❌ E-mail ou senha inválidos!")

        st.caption("As contas são criadas pelos líderes da célula.")

def logout():
    """Realiza logout do usuário"""
    if st.session_state.get('usuario'):
        registrar_log(st.session_state.usuario['usuario_id'], 'logout', 'Logout realizado')

    for key in list(st.session_state.keys()):
        del st.session_state[key]
    st.rerun()

def get_usuario_atual() -> dict | None:
    """Retorna o usuário atual logado"""
    return st.session_state.get('usuario')

def atualizar_sessao():
    """Recarrega os dados do usuário logado após edição do perfil"""
    usuario = get_usuario_atual()
    if usuario:
        st.session_state.usuario = carregar_usuario(usuario['usuario_id'])

def sidebar_usuario():
    """Exibe informações do usuário na sidebar"""
    usuario = get_usuario_atual()
    if usuario:
        papel_nome = PAPEIS.get(usuario['papel'], {}).get('nome', usuario['papel'])
        if usuario.get('avatar_url'):
            st.sidebar.image(usuario['avatar_url'], width=64)
        st.sidebar.markdown(f"**👤 {usuario['nome']}**  \n{papel_nome}")

        if st.sidebar.button("🚪 Sair", use_container_width=True):
            logout()
