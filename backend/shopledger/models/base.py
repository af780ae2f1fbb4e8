# Overview: Shared row/entity serialization for models.

from __future__ import annotations

from ..mappers import bool_to_int, dump_json, row_to_entity, BOOLEAN_FIELDS, JSON_FIELDS


class RowMixin:
    """
    to_row(): the stored shape (snake_case columns, 0/1 flags, JSON text).
    to_dict(): the API entity (camelCase), derived from to_row() via mappers.
    """

    # Columns kept out of the API entity
    __hidden_columns__: tuple = ("version_id",)

    def to_row(self) -> dict:
        row = {}
        for column in self.__mapper__.columns:
            value = getattr(self, column.key)
            if column.key in BOOLEAN_FIELDS:
                value = bool_to_int(value)
            elif column.key in JSON_FIELDS:
                value = dump_json(value)
            row[column.key] = value
        return row

    def to_dict(self) -> dict:
        row = {k: v for k, v in self.to_row().items() if k not in self.__hidden_columns__}
        return row_to_entity(row)
