from tortoise import fields
from tortoise_vector.field import VectorField

from .base import UUIDModel


class Snippet(UUIDModel):
    """A retrievable unit of text. Rows are only ever inserted or deleted."""

    content = fields.TextField()
    metadata = fields.JSONField(default=dict)
    embedding = VectorField(vector_size=768)

    class Meta:
        table = "snippets"
        table_description = "Snippets Table"
