from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from modules import storage
from modules.testemunhos import criar_testemunho, get_testemunhos, responder_testemunho, excluir_testemunho
from modules.palavra_dia import publicar_palavra, editar_palavra, get_palavras, get_palavra_atual, foi_editada
from modules.devocionais import criar_devocional, get_devocionais, excluir_devocional
from modules.notificacoes import get_notificacoes
from modules.mural import AUTOR_ANONIMO
from config.settings import BUCKET_MIDIA, BUCKET_DEVOCIONAIS, LIMITE_TESTEMUNHO, LIMITE_PALAVRA_DIA

def _png():
    buffer = BytesIO()
    Image.new('RGB', (10, 10)).save(buffer, format='PNG')
    return buffer.getvalue()

# ==================== TESTEMUNHOS ====================

def test_testemunho_com_imagem(membro):
    testemunho_id = criar_testemunho(membro, 'Cura', 'Fui curada!', arquivo=('foto.png', _png(), 'image/png'))

    testemunho = get_testemunhos(membro)[0]
    assert testemunho['id'] == testemunho_id
    assert testemunho['tipo_midia'] == 'imagem'
    assert testemunho['midia_url'].startswith(f"{membro['usuario_id']}/")
    assert Path(testemunho['midia_publica']).read_bytes() == _png()

def test_testemunho_com_video(membro):
    criar_testemunho(membro, 'Batismo', 'Vídeo do batismo', arquivo=('batismo.mp4', b'\x00\x01', 'video/mp4'))
    assert get_testemunhos(membro)[0]['tipo_midia'] == 'video'

def test_testemunho_sem_midia(membro):
    criar_testemunho(membro, 'Gratidão', 'Obrigado, Senhor')
    testemunho = get_testemunhos(membro)[0]
    assert testemunho['tipo_midia'] == 'texto'
    assert testemunho['midia_url'] is None
    assert testemunho['midia_publica'] is None

def test_testemunho_rejeita_outros_arquivos(membro):
    with pytest.raises(ValueError):
        criar_testemunho(membro, 'PDF', 'texto', arquivo=('doc.pdf', b'%PDF', 'application/pdf'))
    assert storage.listar_arquivos(BUCKET_MIDIA, str(membro['usuario_id'])) == []

def test_testemunho_limite(membro):
    with pytest.raises(ValueError):
        criar_testemunho(membro, 'Longo', 'a' * (LIMITE_TESTEMUNHO + 1))

def test_testemunho_anonimo(membro, outro_membro):
    criar_testemunho(membro, 'Libertação', 'texto', anonimo=True)
    assert get_testemunhos(outro_membro)[0]['autor_nome'] == AUTOR_ANONIMO
    assert get_testemunhos(membro)[0]['autor_nome'] == 'Maria Souza'

def test_midia_de_testemunho_anonimo_nao_identifica_o_autor(membro, outro_membro):
    criar_testemunho(membro, 'Cura', 'texto', anonimo=True, arquivo=('foto.png', _png(), 'image/png'))

    testemunho = get_testemunhos(outro_membro)[0]
    assert testemunho['autor_nome'] == AUTOR_ANONIMO
    assert testemunho['midia_url'].startswith('anonimos/')
    assert not testemunho['midia_url'].startswith(f"{membro['usuario_id']}/")
    assert Path(testemunho['midia_publica']).read_bytes() == _png()

def test_resposta_ao_testemunho_notifica(membro, outro_membro):
    testemunho_id = criar_testemunho(membro, 'Cura', 'texto')
    responder_testemunho(outro_membro, testemunho_id, 'Glória a Deus!')

    notificacoes = get_notificacoes(membro['usuario_id'])
    assert notificacoes[0]['tipo'] == 'testemunho'
    assert get_testemunhos(membro)[0]['total_respostas'] == 1

def test_excluir_testemunho_remove_a_midia(membro):
    testemunho_id = criar_testemunho(membro, 'Cura', 'texto', arquivo=('foto.png', _png(), 'image/png'))
    caminho = Path(get_testemunhos(membro)[0]['midia_publica'])

    excluir_testemunho(membro, testemunho_id)

    assert get_testemunhos(membro) == []
    assert not caminho.exists()

def test_excluir_testemunho_de_outro(membro, outro_membro):
    testemunho_id = criar_testemunho(membro, 'Cura', 'texto')
    with pytest.raises(PermissionError):
        excluir_testemunho(outro_membro, testemunho_id)

# ==================== PALAVRA DO DIA ====================

def test_membro_nao_publica_palavra(membro):
    with pytest.raises(PermissionError):
        publicar_palavra(membro, 'Salmo 23', 'O Senhor é meu pastor')

def test_palavra_mais_recente_em_destaque(lider, lider_treinamento):
    publicar_palavra(lider, 'Primeira', 'texto')
    publicar_palavra(lider_treinamento, 'Segunda', 'texto')

    assert [p['titulo'] for p in get_palavras()] == ['Segunda', 'Primeira']
    atual = get_palavra_atual()
    assert atual['titulo'] == 'Segunda'
    assert atual['autor_nome'] == 'Ana Costa'
    assert not foi_editada(atual)

def test_sem_palavra(db):
    assert get_palavra_atual() is None

def test_somente_o_autor_edita(lider, lider_treinamento):
    palavra_id = publicar_palavra(lider_treinamento, 'Salmo 23', 'O Senhor é meu pastor')

    with pytest.raises(PermissionError):
        editar_palavra(lider, palavra_id, 'Outro', 'texto')

    editar_palavra(lider_treinamento, palavra_id, 'Salmo 23', '<strong>O Senhor</strong> é meu pastor')
    palavra = get_palavra_atual()
    assert palavra['conteudo'] == '<strong>O Senhor</strong> é meu pastor'
    assert foi_editada(palavra)

def test_palavra_limite(lider):
    with pytest.raises(ValueError):
        publicar_palavra(lider, 'Longa', 'a' * (LIMITE_PALAVRA_DIA + 1))

def test_editar_palavra_inexistente(lider):
    with pytest.raises(ValueError):
        editar_palavra(lider, 42, 'Título', 'texto')

# ==================== DEVOCIONAIS ====================

def test_devocional_com_imagem(membro):
    criar_devocional(membro, 'Manhã', 'Leitura de Salmos', imagem=('capa.png', _png(), 'image/png'))

    devocional = get_devocionais()[0]
    assert devocional['autor_nome'] == 'Maria Souza'
    assert Path(devocional['imagem_url']).exists()
    assert str(storage.UPLOADS_DIR / BUCKET_DEVOCIONAIS) in devocional['imagem_url']

def test_devocional_aceita_apenas_imagens(membro):
    with pytest.raises(ValueError, match="imagem"):
        criar_devocional(membro, 'Manhã', 'texto', imagem=('video.mp4', b'\x00', 'video/mp4'))
    assert get_devocionais() == []

def test_devocional_sem_imagem(membro):
    criar_devocional(membro, 'Noite', 'Oração')
    assert get_devocionais()[0]['imagem_url'] is None

def test_excluir_devocional(membro, outro_membro, lider):
    devocional_id = criar_devocional(membro, 'Manhã', 'texto', imagem=('capa.png', _png(), 'image/png'))
    imagem = Path(get_devocionais()[0]['imagem_url'])

    with pytest.raises(PermissionError):
        excluir_devocional(outro_membro, devocional_id)

    excluir_devocional(lider, devocional_id)
    assert get_devocionais() == []
    assert not imagem.exists()
