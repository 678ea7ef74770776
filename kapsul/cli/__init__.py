"""Kapsul 命令行接口"""
