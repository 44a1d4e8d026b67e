"""
Armazenamento de arquivos (buckets)
Avatares, mídias de testemunhos e imagens de devocionais
"""
import logging
import uuid
from datetime import datetime
from io import BytesIO
from pathlib import Path, PurePosixPath
from PIL import Image, ImageOps, UnidentifiedImageError
from config.settings import (
    UPLOADS_DIR, STORAGE_PUBLIC_URL, LADO_AVATAR, QUALIDADE_AVATAR
)

logger = logging.getLogger(__name__)

def _caminho_bucket(bucket: str, caminho: str) -> Path:
    """Resolve o caminho físico de um arquivo dentro do bucket"""
    relativo = PurePosixPath(caminho)
    if relativo.is_absolute() or '..' in relativo.parts:
        raise ValueError("Caminho de arquivo inválido.")
    return UPLOADS_DIR / bucket / Path(*relativo.parts)

def gerar_nome_arquivo(dono, nome_original: str) -> str:
    """Gera um caminho único <dono>/<timestamp>_<id>.<ext>"""
    extensao = nome_original.rsplit('.', 1)[-1].lower() if '.' in nome_original else 'bin'
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    return f"{dono}/{timestamp}_{uuid.uuid4().hex[:8]}.{extensao}"

def upload_arquivo(bucket: str, caminho: str, conteudo: bytes) -> str:
    """Salva um arquivo no bucket e retorna o caminho relativo"""
    destino = _caminho_bucket(bucket, caminho)
    destino.parent.mkdir(parents=True, exist_ok=True)
    destino.write_bytes(conteudo)
    logger.info("Arquivo salvo em %s/%s (%d bytes)", bucket, caminho, len(conteudo))
    return caminho

def get_public_url(bucket: str, caminho: str) -> str:
    """URL pública de um arquivo do bucket"""
    if STORAGE_PUBLIC_URL:
        return f"{STORAGE_PUBLIC_URL}/{bucket}/{caminho}"
    return str(_caminho_bucket(bucket, caminho))

def remover_arquivo(bucket: str, caminho: str) -> bool:
    """Remove um arquivo do bucket"""
    try:
        arquivo = _caminho_bucket(bucket, caminho)
        if arquivo.exists():
            arquivo.unlink()
            return True
    except (OSError, ValueError):
        logger.warning("Não foi possível remover %s/%s", bucket, caminho, exc_info=True)
    return False

def listar_arquivos(bucket: str, pasta: str) -> list:
    """Caminhos relativos dos arquivos de uma pasta do bucket"""
    diretorio = _caminho_bucket(bucket, pasta)
    if not diretorio.is_dir():
        return []
    return sorted(f"{pasta}/{arquivo.name}" for arquivo in diretorio.iterdir() if arquivo.is_file())

def eh_imagem(content_type: str) -> bool:
    return bool(content_type) and content_type.startswith('image/')

def tipo_midia(content_type: str) -> str:
    """Classifica o arquivo enviado em imagem, vídeo ou texto"""
    if eh_imagem(content_type):
        return 'imagem'
    if content_type and content_type.startswith('video/'):
        return 'video'
    return 'texto'

def preparar_avatar(conteudo: bytes) -> bytes:
    """Recorta a imagem no centro em formato quadrado e converte para JPEG"""
    try:
        imagem = Image.open(BytesIO(conteudo))
        imagem = ImageOps.exif_transpose(imagem)
    except UnidentifiedImageError as e:
        raise ValueError("Arquivo de imagem inválido.") from e

    imagem = ImageOps.fit(imagem.convert('RGB'), (LADO_AVATAR, LADO_AVATAR))

    buffer = BytesIO()
    imagem.save(buffer, format='JPEG', quality=QUALIDADE_AVATAR)
    return buffer.getvalue()
