from tortoise import BaseDBAsyncClient


async def upgrade(db: BaseDBAsyncClient) -> str:
    return """
        CREATE INDEX IF NOT EXISTS "idx_snippets_student_id" ON "snippets" ((metadata->>'student_id'));
        CREATE INDEX IF NOT EXISTS "idx_snippets_embedding_l2" ON "snippets" USING hnsw ("embedding" vector_l2_ops);"""


async def downgrade(db: BaseDBAsyncClient) -> str:
    return """
        DROP INDEX IF EXISTS "idx_snippets_student_id";
        DROP INDEX IF EXISTS "idx_snippets_embedding_l2";"""
