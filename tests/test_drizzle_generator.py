import unittest

from schema_studio.drizzle_generator import column_expression, generate_drizzle_schema, sanitize_identifier
from schema_studio.schema_model import Column, EnumSpec, Position, Relation, Schema, Table, enum_type


def _blog_schema() -> Schema:
    return Schema(
        tables=[
            Table(
                id="table-1",
                name="users",
                columns=[
                    Column("col-1", "id", "integer", nullable=False, primary_key=True, unique=True, auto_increment=True),
                    Column("col-2", "email", "varchar", nullable=False, unique=True),
                ],
            ),
            Table(
                id="table-2",
                name="posts",
                columns=[
                    Column("col-3", "id", "integer", nullable=False, primary_key=True, auto_increment=True),
                    Column("col-4", "user_id", "integer", nullable=False),
                    Column("col-5", "title", "text"),
                ],
            ),
        ],
        relations=[Relation("rel-1", "table-1", "col-1", "table-2", "col-4", "one-to-many")],
    )


EXPECTED_BLOG_SOURCE = """import { pgTable, text, integer, boolean, timestamp, date, jsonb, varchar, serial } from 'drizzle-orm/pg-core'
import { relations } from 'drizzle-orm'

export const users = pgTable('users', {
  id: serial.notNull().unique(),
  email: varchar('email', { length: 255 }).notNull().unique(),
})

export const posts = pgTable('posts', {
  id: serial.notNull(),
  user_id: integer('user_id').notNull(),
  title: text('title'),
})

// Relations

export const usersRelations = relations(users, ({ one, many }) => ({
  posts: many(posts),
}))

export const postsRelations = relations(posts, ({ one, many }) => ({
  users: one(users, {
    fields: [posts.user_id],
    references: [users.id],
  }),
}))

"""


class TestDrizzleGenerator(unittest.TestCase):
    def test_generates_expected_source(self):
        self.assertEqual(generate_drizzle_schema(_blog_schema()), EXPECTED_BLOG_SOURCE)

    def test_output_is_deterministic(self):
        schema = _blog_schema()
        self.assertEqual(generate_drizzle_schema(schema), generate_drizzle_schema(schema))

    def test_modifier_order_is_not_null_unique_primary_key(self):
        column = Column("c", "code", "varchar", nullable=False, primary_key=True, unique=True)
        self.assertEqual(
            column_expression(column, enum_identifiers={}),
            "varchar('code', { length: 255 }).notNull().unique().primaryKey()",
        )

    def test_json_is_written_as_jsonb(self):
        column = Column("c", "payload", "json")
        self.assertEqual(column_expression(column, enum_identifiers={}), "jsonb('payload')")

    def test_no_relation_section_without_relations(self):
        schema = Schema(tables=[Table("t", "tags", [Column("c", "label", "text")])])
        source = generate_drizzle_schema(schema)
        self.assertNotIn("// Relations", source)
        self.assertNotIn("tagsRelations", source)

    def test_tables_without_relations_get_no_block(self):
        schema = _blog_schema()
        schema = Schema(
            tables=[*schema.tables, Table("table-3", "tags", [Column("col-9", "label", "text")])],
            relations=schema.relations,
        )
        source = generate_drizzle_schema(schema)
        self.assertIn("export const tags = pgTable('tags', {", source)
        self.assertNotIn("tagsRelations", source)

    def test_identifiers_are_sanitized_and_unique(self):
        self.assertEqual(sanitize_identifier("user-profiles"), "userprofiles")
        schema = Schema(
            tables=[
                Table("t1", "user-s", [Column("c1", "id", "text")]),
                Table("t2", "users", [Column("c2", "id", "text")]),
                Table("t3", "2024 stats", [Column("c3", "id", "text")]),
                Table("t4", "default", [Column("c4", "id", "text")]),
            ]
        )
        source = generate_drizzle_schema(schema)
        self.assertIn("export const users = pgTable('user-s', {", source)
        self.assertIn("export const users2 = pgTable('users', {", source)
        self.assertIn("export const table2024stats = pgTable('2024 stats', {", source)
        self.assertIn("export const default2 = pgTable('default', {", source)

    def test_one_to_one_outgoing_is_a_scalar_reference(self):
        schema = _blog_schema()
        relation = Relation("rel-1", "table-1", "col-1", "table-2", "col-4", "one-to-one")
        source = generate_drizzle_schema(Schema(tables=schema.tables, relations=[relation]))
        self.assertIn(
            "  posts: one(posts, {\n    fields: [users.id],\n    references: [posts.user_id],\n  }),\n",
            source,
        )

    def test_many_to_many_field_is_pluralized(self):
        schema = _blog_schema()
        relation = Relation("rel-1", "table-1", "col-1", "table-2", "col-4", "many-to-many")
        source = generate_drizzle_schema(Schema(tables=schema.tables, relations=[relation]))
        self.assertIn("  postss: many(posts),\n", source)

    def test_non_identifier_names_are_quoted(self):
        schema = Schema(tables=[Table("t", "it's", [Column("c", "first name", "text")])])
        source = generate_drizzle_schema(schema)
        self.assertIn("export const its = pgTable('it\\'s', {", source)
        self.assertIn("  'first name': text('first name'),", source)

    def test_enums_are_declared_and_imported(self):
        schema = Schema(
            tables=[
                Table("t", "posts", [Column("c", "state", enum_type("post status"), nullable=False)]),
            ],
            enums=[EnumSpec("post status", ["draft", "published"])],
        )
        source = generate_drizzle_schema(schema)
        self.assertIn("varchar, serial, pgEnum } from 'drizzle-orm/pg-core'", source)
        self.assertIn("export const poststatusEnum = pgEnum('post status', ['draft', 'published'])", source)
        self.assertIn("  state: poststatusEnum('state').notNull(),", source)

    def test_layout_attributes_do_not_change_output(self):
        schema = _blog_schema()
        moved = Schema(
            tables=[
                Table(t.id, t.name, t.columns, position=Position(500, 40), width=400) for t in schema.tables
            ],
            relations=schema.relations,
        )
        self.assertEqual(generate_drizzle_schema(moved), generate_drizzle_schema(schema))


if __name__ == "__main__":
    unittest.main()
