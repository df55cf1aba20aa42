"""
Suite de tests para el motor de migración MongoDB → PostgreSQL.

Los tests NO requieren bases de datos reales:
- El motor se prueba contra un almacén en memoria (helpers.FakeStore)
- La configuración y el DDL se validan de forma estática
"""
