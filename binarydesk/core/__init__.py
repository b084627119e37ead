"""Configuración, constantes de presentación y logging."""
