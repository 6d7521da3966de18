"""
Módulo de acceso a la base de datos de pedidos.

Separación de responsabilidades:

- Database: engine asíncrono y pool de conexiones acotado
- TransactionCoordinator / UnitOfWork: límites de transacción por operación lógica
- repositories: consultas por tabla sobre la sesión de la unidad de trabajo
"""

from app.db.connection import Database
from app.db.transaction import TransactionCoordinator, UnitOfWork

__all__ = ["Database", "TransactionCoordinator", "UnitOfWork"]
