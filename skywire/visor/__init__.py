"""Visor configuration and duration parsing."""