import os
import shutil
import hashlib
import tarfile
import requests
import yaml
import json

from librestore.modules import log, config

logger = log.get_logger("utils")


# -------------------------
# Sistema de arquivos
# -------------------------
def ensure_dir(path: str):
    """Cria diretório se não existir"""
    os.makedirs(path, exist_ok=True)


def rm(path: str):
    """Remove arquivo ou diretório"""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def is_writable_dir(path: str) -> bool:
    """Verifica se o diretório existe (ou pode ser criado) e aceita escrita"""
    probe = path
    while probe and not os.path.exists(probe):
        parent = os.path.dirname(probe)
        if parent == probe:
            break
        probe = parent
    return os.path.isdir(probe) and os.access(probe, os.W_OK)


# -------------------------
# Download e cache
# -------------------------
def download(url: str, dest: str, expected_sha256: str | None = None, timeout: int | None = None):
    """Baixa arquivo com cache e checagem opcional de SHA256"""
    ensure_dir(os.path.dirname(dest))

    if os.path.isfile(dest):
        logger.info("Arquivo já existe em cache: %s", dest)
        if expected_sha256 and not verify_sha256(dest, expected_sha256):
            logger.error("Hash incorreto para %s, rebaixando...", dest)
            os.remove(dest)
        else:
            return dest

    logger.info("Baixando %s → %s", url, dest)
    timeout = timeout or config.get("download_timeout")
    partial = dest + ".part"
    with requests.get(url, stream=True, timeout=timeout) as r:
        r.raise_for_status()
        with open(partial, "wb") as f:
            for chunk in r.iter_content(chunk_size=8192):
                f.write(chunk)
    os.replace(partial, dest)

    if expected_sha256 and not verify_sha256(dest, expected_sha256):
        raise ValueError(f"SHA256 inválido para {dest}")

    return dest


def verify_sha256(path: str, expected: str) -> bool:
    """Verifica SHA256 de um arquivo"""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    digest = h.hexdigest()
    return digest == expected.lower()


# -------------------------
# Extração de arquivos
# -------------------------
def extract_tarball(tar_path: str, dest_dir: str):
    """Extrai tarball (.tar.gz, .tar.xz, etc.)"""
    ensure_dir(dest_dir)
    logger.debug("Extraindo %s → %s", tar_path, dest_dir)
    with tarfile.open(tar_path, "r:*") as tar:
        tar.extractall(dest_dir, filter="data")
    return dest_dir


# -------------------------
# Leitura de arquivos estruturados
# -------------------------
def load_yaml(path: str) -> dict:
    """Carrega YAML em dict"""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_json(path: str) -> dict:
    """Carrega JSON em dict"""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# -------------------------
# Helpers diversos
# -------------------------
def get_cache_path(*parts: str) -> str:
    """Retorna caminho completo dentro do cache"""
    return os.path.join(os.path.expanduser(config.get("cache_dir")), *parts)
