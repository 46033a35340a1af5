"""librestore - restaura bibliotecas de pacotes a partir de um lockfile."""

__version__ = "1.0.0"
