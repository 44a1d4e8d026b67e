"""
Módulo de Configurações
Meu perfil (dados pessoais e foto) e conta (senha)
"""
from datetime import date
import streamlit as st
from modules.auth import get_usuario_atual, atualizar_sessao, alterar_senha
from modules.perfis import get_perfil, atualizar_meu_perfil, atualizar_avatar, nome_papel
from config.settings import TAMANHO_MINIMO_SENHA

def render_configuracoes():
    """Função principal do módulo de configurações"""
    st.title("⚙️ Configurações")

    tab1, tab2 = st.tabs(["👤 Meu Perfil", "🔒 Conta"])

    with tab1:
        render_meu_perfil()

    with tab2:
        render_conta()

def render_meu_perfil():
    """Dados pessoais e foto de perfil"""
    usuario = get_usuario_atual()
    perfil = get_perfil(usuario['usuario_id'])

    col1, col2 = st.columns([1, 3])

    with col1:
        if perfil.get('avatar_url'):
            st.image(perfil['avatar_url'], width=120)
        else:
            st.markdown("<div style='font-size: 5rem;'>👤</div>", unsafe_allow_html=True)

        arquivo = st.file_uploader("Alterar foto", type=['png', 'jpg', 'jpeg', 'gif', 'webp'],
                                   key="upload_avatar")
        if arquivo and st.button("📷 Salvar foto", use_container_width=True):
            try:
                atualizar_avatar(usuario, arquivo.name, arquivo.getvalue(), arquivo.type)
                atualizar_sessao()
                st.success("✅ Foto atualizada!")
                st.rerun()
            except ValueError as e:
                st.error(str(e))

    with col2:
        st.caption(f"{perfil['email']} • {nome_papel(perfil['papel'])}")

        with st.form("form_meu_perfil"):
            nome = st.text_input("Nome *", value=perfil['nome'])
            telefone = st.text_input("Telefone", value=perfil.get('telefone') or '')
            endereco = st.text_input("Endereço", value=perfil.get('endereco') or '')

            col_a, col_b = st.columns(2)
            with col_a:
                nascimento = st.date_input(
                    "Data de nascimento",
                    value=date.fromisoformat(perfil['data_nascimento']) if perfil.get('data_nascimento') else None,
                    min_value=date(1900, 1, 1), max_value=date.today(), format="DD/MM/YYYY"
                )
            with col_b:
                idade = st.text_input("Idade", value=str(perfil['idade'] or ''),
                                      help="Calculada pela data de nascimento quando em branco")

            if st.form_submit_button("💾 Salvar", use_container_width=True):
                try:
                    atualizar_meu_perfil(usuario, {
                        'nome': nome,
                        'telefone': telefone,
                        'endereco': endereco,
                        'data_nascimento': nascimento,
                        'idade': idade if idade and not nascimento else None
                    })
                    atualizar_sessao()
                    st.success("✅ Perfil atualizado com sucesso!")
                    st.rerun()
                except ValueError as e:
                    st.error(str(e))

def render_conta():
    """Troca de senha"""
    usuario = get_usuario_atual()

    with st.form("form_senha", clear_on_submit=True):
        nova_senha = st.text_input("Nova senha", type="password",
                                   help=f"Mínimo de {TAMANHO_MINIMO_SENHA} caracteres")
        confirmacao = st.text_input("Confirmar nova senha", type="password")

        if st.form_submit_button("🔒 Alterar senha", use_container_width=True):
            try:
                alterar_senha(usuario['usuario_id'], nova_senha, confirmacao)
                st.success("✅ Senha alterada com sucesso!")
            except ValueError as e:
                st.error(str(e))
