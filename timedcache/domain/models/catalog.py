"""Entities served by the demo data sources."""

from dataclasses import dataclass


@dataclass
class User:
    id: int
    first_name: str
    second_name: str


@dataclass
class Product:
    id: int
    name: str
