#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cli.py - CLI do librestore (restore, status, config)
"""

from __future__ import annotations
import argparse
import json
import sys
from typing import Any

import yaml

from librestore.modules import config as config_mod, log as log_mod
from librestore.modules.lockfile import ManifestReadError
from librestore.modules.preflight import ConsolePrompter, PreflightRejected
from librestore.modules.restore import RestoreEngine, RestoreStatus

# ANSI colors simples
C = {
    "reset": "\033[0m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "bold": "\033[1m",
}

def color(text: str, col: str) -> str:
    return f"{C.get(col, '')}{text}{C['reset']}"

logger = log_mod.get_logger("cli")

# Small helpers
def _print_json_or_plain(data: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        if isinstance(data, dict):
            for k,v in data.items():
                print(f"{color(str(k), 'cyan')}: {v}")
        elif isinstance(data, list):
            for item in data:
                print(item)
        else:
            print(data)

def _setup_logging(verbose: bool) -> None:
    log_mod.set_level("debug" if verbose else "info")

def _parse_repos(values) -> dict:
    repos = {}
    for item in values or []:
        name, sep, url = item.partition("=")
        if not sep or not name or not url:
            raise ValueError(f"Repositório inválido (use NOME=URL): {item}")
        repos[name] = url
    return repos

def _rebuild_arg(values):
    if not values:
        return None
    return True if "*" in values else list(values)

# ---------------------------
# Command handlers
# ---------------------------

def cmd_restore(args):
    """
    librestore restore [--project P] [--library L ...] [--lockfile F] [--repo NOME=URL ...]
                       [--clean] [--yes] [--rebuild PKG|*] [--ignore PKG]
    """
    engine = RestoreEngine(prompter=ConsolePrompter())
    try:
        outcome = engine.restore(
            project=args.project,
            library=args.library or None,
            lockfile=args.lockfile,
            repos=_parse_repos(args.repo),
            clean=args.clean,
            confirm=not args.yes and sys.stdin.isatty(),
            rebuild=_rebuild_arg(args.rebuild),
            ignored=args.ignore or (),
            verbose=args.verbose or None,
        )
    except (ManifestReadError, PreflightRejected, ValueError) as e:
        logger.debug("Restore falhou", exc_info=True)
        print(color(f"[ERRO] {e}", "red"), file=sys.stderr)
        return 2

    if getattr(args, "json", False):
        _print_json_or_plain(outcome.to_dict(), True)
    elif outcome.status is RestoreStatus.SYNCHRONIZED:
        print(color("[OK] Nada a fazer: biblioteca sincronizada", "green"))
    elif outcome.status is RestoreStatus.ABORTED:
        print(color("[WARN] Operação abortada; nada foi alterado", "yellow"))
    else:
        for name, record in outcome.records.items():
            print(f"{color(name, 'cyan')} {color(record.version or '?', 'magenta')}")
        for name, failure in outcome.failures.items():
            print(color(f"[ERRO] {name}: {failure.reason}", "red"), file=sys.stderr)
        if outcome.repairs:
            print(color("[WARN] Dependências fora do lockfile: " + ", ".join(outcome.repairs), "yellow"))
        if outcome.unresolved:
            print(color("[WARN] Dependências sem registro (não instaladas): " + ", ".join(outcome.unresolved), "yellow"))
    return 0 if outcome.ok else 1

def cmd_status(args):
    """
    librestore status [--project P] [--library L ...] [--lockfile F] [--clean]
    """
    try:
        plan = RestoreEngine().plan(
            project=args.project,
            library=args.library or None,
            lockfile=args.lockfile,
            clean=args.clean,
            ignored=args.ignore or (),
        )
    except ManifestReadError as e:
        print(color(f"[ERRO] {e}", "red"), file=sys.stderr)
        return 2
    data = {name: action.value for name, action in plan.actions.items()}
    if not data and not getattr(args, "json", False):
        print(color("[OK] Sincronizado com o lockfile", "green"))
        return 0
    _print_json_or_plain(data, getattr(args, "json", False))
    return 0

def cmd_config(args):
    """
    librestore config get <key>
    librestore config set <key> <value> [--system]
    librestore config list
    librestore config reset [--system]
    """
    cfg = config_mod
    act = args.action
    if act == "get":
        if not args.key:
            print("Uso: librestore config get <chave>")
            return 1
        print(cfg.get(args.key))
        return 0
    elif act == "set":
        if not args.key or args.value is None:
            print("Uso: librestore config set <chave> <valor> [--system]")
            return 1
        try:
            value = yaml.safe_load(args.value)
        except yaml.YAMLError:
            value = args.value
        cfg.set(args.key, value, system=args.system)
        print(f"[OK] Configuração '{args.key}' definida para '{args.value}' ({'global' if args.system else 'usuário'})")
        return 0
    elif act == "list":
        allcfg = cfg.all()
        for k, v in allcfg.items():
            print(f"{k}: {v}")
        return 0
    elif act == "reset":
        cfg.reset(system=args.system)
        print(f"[OK] Configuração restaurada para padrões {'globais' if args.system else 'de usuário'}")
        return 0
    else:
        print("Ação desconhecida:", act)
        return 1

# -----------------------------------------------------------------------------
# Build argument parser and connect commands
# -----------------------------------------------------------------------------

def _add_project_args(sp):
    sp.add_argument("--project", "-p", default=None, help="Diretório do projeto (padrão: cwd)")
    sp.add_argument("--library", "-l", action="append", default=[], help="Biblioteca (repetível; a primeira é o alvo)")
    sp.add_argument("--lockfile", default=None, help="Caminho do lockfile")
    sp.add_argument("--clean", action="store_true", help="Remover pacotes fora do lockfile")
    sp.add_argument("--ignore", action="append", default=[], help="Pacote a ignorar (repetível)")

def build_parser():
    p = argparse.ArgumentParser(prog="librestore", description="librestore - Restaura bibliotecas a partir do lockfile")
    p.add_argument("--verbose", "-v", action="store_true", help="Modo verboso")
    p.add_argument("--json", action="store_true", help="Imprime JSON quando aplicável")
    sub = p.add_subparsers(dest="command")

    # restore
    sr = sub.add_parser("restore", aliases=["r"], help="Restaurar biblioteca a partir do lockfile")
    _add_project_args(sr)
    sr.add_argument("--repo", action="append", default=[], help="Override de repositório NOME=URL (repetível)")
    sr.add_argument("--yes", "-y", action="store_true", help="Não pedir confirmação")
    sr.add_argument("--rebuild", action="append", default=[], help="Pacote a reinstalar sem atalho local ('*' = todos)")
    sr.set_defaults(func=cmd_restore)

    # status
    ss = sub.add_parser("status", aliases=["st"], help="Mostrar ações pendentes sem alterar nada")
    _add_project_args(ss)
    ss.set_defaults(func=cmd_status)

    # config
    sc = sub.add_parser("config", help="Gerenciar configuração do librestore")
    sc.add_argument("action", choices=["get","set","list","reset"], help="Ação sobre a configuração")
    sc.add_argument("key", nargs="?", help="Chave da configuração")
    sc.add_argument("value", nargs="?", help="Valor (para set)")
    sc.add_argument("--system", action="store_true", help="Salvar/operar no config global (/etc)")
    sc.set_defaults(func=cmd_config)

    return p

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(getattr(args, "verbose", False))

    try:
        rc = args.func(args)
        if isinstance(rc, int):
            sys.exit(rc)
        sys.exit(0)
    except Exception as e:
        log_mod.exception("Erro ao executar comando")
        print(color(f"[ERRO] {e}", "red"), file=sys.stderr)
        sys.exit(2)

if __name__ == "__main__":
    main()
