#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
config.py - Módulo de configuração do librestore

- Suporta $LIBRESTORE_CONFIG > ~/.config/librestore/config.yml > /etc/librestore/config.yml > defaults
- Mantém compatibilidade com YAML
- Permite leitura, escrita, reset e listagem completa da config
- Inclui campos para bibliotecas, lockfile, repositórios e overrides de registros
"""

import os
import yaml

# Caminhos padrão
USER_CONFIG = os.path.expanduser("~/.config/librestore/config.yml")
SYSTEM_CONFIG = "/etc/librestore/config.yml"

# Valores padrão (completo)
DEFAULTS = {
    # Bibliotecas (vazio -> <projeto>/library)
    "library_paths": [],
    "lockfile_name": "restore.lock",

    # Diretórios
    "cache_dir": os.path.expanduser("~/.cache/librestore"),
    "log_dir": os.path.expanduser("~/.local/state/librestore/log"),

    # Repositórios
    "repos_override": {},
    "download_timeout": 60,

    # Restauração
    "ignored_packages": [],
    "overrides": {},
    "recursive": True,
    "runtime_version": None,
    "verbose": False,
}

_config = DEFAULTS.copy()


def _load_from(path: str) -> dict:
    """Carrega configuração de um arquivo YAML se existir."""
    try:
        if os.path.isfile(path):
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
                if not isinstance(data, dict):
                    return {}
                return data
    except (OSError, yaml.YAMLError):
        pass
    return {}


def load_config() -> dict:
    """Carrega config seguindo a hierarquia: env > user > system > defaults"""
    global _config

    # 1. Variável de ambiente
    env_path = os.getenv("LIBRESTORE_CONFIG")
    if env_path and os.path.exists(env_path):
        _config = {**DEFAULTS, **_load_from(env_path)}
        return _config

    # 2. Configuração do usuário
    if os.path.exists(USER_CONFIG):
        _config = {**DEFAULTS, **_load_from(USER_CONFIG)}
        return _config

    # 3. Configuração global
    if os.path.exists(SYSTEM_CONFIG):
        _config = {**DEFAULTS, **_load_from(SYSTEM_CONFIG)}
        return _config

    # 4. Defaults
    _config = DEFAULTS.copy()
    return _config


def _target_path(system: bool = False) -> str:
    env_path = os.getenv("LIBRESTORE_CONFIG")
    if env_path and not system:
        return env_path
    return SYSTEM_CONFIG if system else USER_CONFIG


def _save(cfg: dict, system: bool = False) -> None:
    """Salva configuração em YAML (usuário ou sistema)."""
    path = _target_path(system)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, default_flow_style=False, allow_unicode=True)


def get(key: str, default=None):
    """Obtém valor de uma chave da configuração (com fallback)."""
    if not _config:
        load_config()
    return _config.get(key, DEFAULTS.get(key, default))


def set(key: str, value, system: bool = False):
    """Define valor para uma chave e salva em config.yml."""
    cfg = load_config()
    cfg[key] = value
    _save(cfg, system=system)
    _config.update(cfg)


def get_list(key: str) -> list:
    """Obtém chave do tipo lista; um valor único (string) vira lista de um item."""
    value = get(key)
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def all() -> dict:
    """Retorna configuração completa (merge de defaults + arquivo carregado)."""
    return load_config()


def reset(system: bool = False):
    """Restaura configuração para os valores padrão."""
    _save(DEFAULTS.copy(), system=system)
    load_config()


def ensure_dirs():
    """Garante que diretórios essenciais existem."""
    cfg = load_config()
    for key in ["cache_dir", "log_dir"]:
        os.makedirs(os.path.expanduser(cfg[key]), exist_ok=True)


# Carrega config logo no import
load_config()
