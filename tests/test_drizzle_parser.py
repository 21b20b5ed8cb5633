import unittest

from schema_studio.drizzle_parser import parse_drizzle_schema, parse_member
from schema_studio.error_contract import is_actionable_message
from schema_studio.schema_model import Column, enum_type


USERS_AND_POSTS = """
import { pgTable, serial, integer, varchar, text } from 'drizzle-orm/pg-core'
import { relations } from 'drizzle-orm'

export const users = pgTable('users', {
  id: serial('id').primaryKey(),
  email: varchar('email', { length: 255 }).notNull().unique(),
})

export const profiles = pgTable('profiles', {
  id: serial('id').primaryKey(),
  userId: integer('user_id').notNull().unique().references(() => users.id),
})

export const posts = pgTable('posts', {
  id: serial('id').primaryKey(),
  authorId: integer('author_id').references(() => users.id),
  body: text('body'),
})
"""


class TestDrizzleParserColumns(unittest.TestCase):
    def test_serial_with_not_null_normalizes_to_auto_increment_primary_key(self):
        result = parse_drizzle_schema("export const t = pgTable('t', {\n  id: serial('id').notNull(),\n})\n")
        self.assertTrue(result.ok)
        column = result.schema.tables[0].columns[0]
        self.assertEqual(
            column,
            Column(
                id="col-1",
                name="id",
                type="integer",
                nullable=False,
                primary_key=True,
                unique=False,
                auto_increment=True,
            ),
        )

    def test_bare_serial_uses_property_name(self):
        result = parse_drizzle_schema("export const t = pgTable('t', { rowId: serial.notNull() })")
        self.assertTrue(result.ok)
        column = result.schema.tables[0].columns[0]
        self.assertEqual(column.name, "rowId")
        self.assertTrue(column.auto_increment)

    def test_stored_name_comes_from_the_first_string_argument(self):
        result = parse_drizzle_schema(USERS_AND_POSTS)
        self.assertTrue(result.ok)
        profiles = result.schema.tables[1]
        self.assertEqual([c.name for c in profiles.columns], ["id", "user_id"])

    def test_modifiers_in_any_order(self):
        result = parse_drizzle_schema(
            "export const t = pgTable('t', { code: text('code').unique().primaryKey().notNull() })"
        )
        column = result.schema.tables[0].columns[0]
        self.assertFalse(column.nullable)
        self.assertTrue(column.primary_key)
        self.assertTrue(column.unique)
        self.assertFalse(column.auto_increment)

    def test_unknown_type_keyword_becomes_text(self):
        result = parse_drizzle_schema(
            "export const t = pgTable('t', {\n"
            "  amount: numeric('amount', { precision: 10, scale: 2 }).notNull(),\n"
            "  createdAt: timestamp('created_at').defaultNow(),\n"
            "  meta: jsonb('meta'),\n"
            "})\n"
        )
        self.assertTrue(result.ok)
        amount, created_at, meta = result.schema.tables[0].columns
        self.assertEqual((amount.name, amount.type, amount.nullable), ("amount", "text", False))
        self.assertEqual((created_at.name, created_at.type), ("created_at", "timestamp"))
        self.assertEqual(meta.type, "json")

    def test_enum_columns_reference_declared_enums(self):
        result = parse_drizzle_schema(
            "export const moodEnum = pgEnum('mood', ['sad', 'ok', \"happy\"])\n"
            "export const people = pgTable('people', { mood: moodEnum('mood') })\n"
        )
        self.assertTrue(result.ok)
        self.assertEqual(result.schema.enums[0].name, "mood")
        self.assertEqual(result.schema.enums[0].values, ["sad", "ok", "happy"])
        self.assertEqual(result.schema.tables[0].columns[0].type, enum_type("mood"))


class TestDrizzleParserStructure(unittest.TestCase):
    def test_ids_are_sequential_per_parse(self):
        first = parse_drizzle_schema(USERS_AND_POSTS)
        second = parse_drizzle_schema(USERS_AND_POSTS)
        self.assertEqual([t.id for t in first.schema.tables], ["table-1", "table-2", "table-3"])
        self.assertEqual(first.schema, second.schema)
        self.assertEqual(first.schema.tables[2].columns[0].id, "col-5")

    def test_declarations_in_comments_and_strings_are_ignored(self):
        source = (
            "// export const ghost = pgTable('ghost', { id: serial('id') })\n"
            "/* export const ghost2 = pgTable('ghost2', {}) */\n"
            "const note = \"x = pgTable('fake', {})\"\n"
            "export const real = pgTable('real', { id: serial('id') })\n"
        )
        result = parse_drizzle_schema(source)
        self.assertTrue(result.ok)
        self.assertEqual([t.name for t in result.schema.tables], ["real"])

    def test_escaped_quotes_in_names(self):
        result = parse_drizzle_schema("export const t = pgTable('it\\'s', { 'a,b': text('a\\'b') })")
        self.assertTrue(result.ok)
        table = result.schema.tables[0]
        self.assertEqual(table.name, "it's")
        self.assertEqual(table.columns[0].name, "a'b")

    def test_unrecognized_entries_are_skipped(self):
        result = parse_drizzle_schema(
            "export const t = pgTable('t', {\n  ...timestamps,\n  id: serial('id'),\n})\n"
        )
        self.assertTrue(result.ok)
        self.assertEqual(len(result.schema.tables[0].columns), 1)
        self.assertEqual(len(result.skipped), 1)

    def test_table_without_name_literal_is_skipped(self):
        result = parse_drizzle_schema(
            "export const a = pgTable(tableName, { id: serial('id') })\n"
            "export const b = pgTable('b', { id: serial('id') })\n"
        )
        self.assertTrue(result.ok)
        self.assertEqual([t.name for t in result.schema.tables], ["b"])
        self.assertTrue(result.skipped)

    def test_extra_table_arguments_are_ignored(self):
        result = parse_drizzle_schema(
            "export const t = pgTable('t', { id: serial('id'), code: text('code') }, (t) => ({\n"
            "  codeIdx: uniqueIndex('code_idx').on(t.code),\n"
            "}))\n"
        )
        self.assertTrue(result.ok)
        self.assertEqual([c.name for c in result.schema.tables[0].columns], ["id", "code"])


class TestDrizzleParserFailures(unittest.TestCase):
    def test_no_tables_is_a_failure(self):
        result = parse_drizzle_schema("const answer = 42\n")
        self.assertFalse(result.ok)
        self.assertIsNone(result.schema)
        self.assertTrue(is_actionable_message(result.error))

    def test_unbalanced_declaration_is_a_failure(self):
        result = parse_drizzle_schema(
            "export const users = pgTable('users', {\n  id: serial('id'),\n  name: text('name'\n"
        )
        self.assertFalse(result.ok)
        self.assertIsNone(result.schema)
        self.assertIn("Table declaration 'users' (line 1)", result.error)
        self.assertIn("Fix:", result.error)

    def test_mismatched_brackets_inside_declaration_are_a_failure(self):
        result = parse_drizzle_schema(
            "export const roleEnum = pgEnum('role', ['admin', 'member')\n"
            "export const users = pgTable('users', { id: serial('id') })\n"
        )
        self.assertFalse(result.ok)
        self.assertIsNone(result.schema)
        self.assertIn("Enum declaration 'roleEnum' (line 1)", result.error)
        self.assertIn("brackets inside the argument list do not match", result.error)

    def test_non_text_input_is_a_failure(self):
        result = parse_drizzle_schema(None)  # type: ignore[arg-type]
        self.assertFalse(result.ok)


class TestDrizzleParserRelations(unittest.TestCase):
    def test_inline_references_infer_cardinality_from_uniqueness(self):
        result = parse_drizzle_schema(USERS_AND_POSTS)
        self.assertTrue(result.ok)
        schema = result.schema
        self.assertEqual(len(schema.relations), 2)
        to_profiles, to_posts = schema.relations
        self.assertEqual(
            (to_profiles.from_table_id, to_profiles.from_column_id, to_profiles.to_table_id, to_profiles.to_column_id),
            ("table-1", "col-1", "table-2", "col-4"),
        )
        self.assertEqual(to_profiles.type, "one-to-one")
        self.assertEqual(to_posts.to_column_id, "col-6")
        self.assertEqual(to_posts.type, "one-to-many")
        self.assertEqual([r.id for r in schema.relations], ["rel-1", "rel-2"])

    def test_inline_and_block_declarations_are_deduplicated(self):
        source = USERS_AND_POSTS + (
            "export const usersRelations = relations(users, ({ one, many }) => ({\n"
            "  posts: many(posts),\n"
            "  profile: one(profiles, { fields: [users.id], references: [profiles.userId] }),\n"
            "}))\n"
            "export const postsRelations = relations(posts, ({ one }) => ({\n"
            "  author: one(users, { fields: [posts.authorId], references: [users.id] }),\n"
            "}))\n"
        )
        result = parse_drizzle_schema(source)
        self.assertTrue(result.ok)
        self.assertEqual(len(result.schema.relations), 2)

    def test_relation_blocks_alone_produce_relations(self):
        source = (
            "export const authors = pgTable('authors', { id: serial('id') })\n"
            "export const books = pgTable('books', {\n"
            "  id: serial('id'),\n"
            "  authorId: integer('author_id').notNull(),\n"
            "})\n"
            "export const authorsRelations = relations(authors, ({ many }) => ({ books: many(books) }))\n"
        )
        result = parse_drizzle_schema(source)
        self.assertTrue(result.ok)
        (relation,) = result.schema.relations
        self.assertEqual((relation.from_table_id, relation.from_column_id), ("table-1", "col-1"))
        self.assertEqual((relation.to_table_id, relation.to_column_id), ("table-2", "col-3"))
        self.assertEqual(relation.type, "one-to-many")

    def test_one_with_unique_foreign_key_is_one_to_one(self):
        source = (
            "export const users = pgTable('users', { id: serial('id') })\n"
            "export const avatars = pgTable('avatars', {\n"
            "  id: serial('id'),\n"
            "  ownerId: integer('owner_id').unique(),\n"
            "})\n"
            "export const avatarsRelations = relations(avatars, ({ one }) => ({\n"
            "  owner: one(users, { fields: [avatars.ownerId], references: [users.id] }),\n"
            "}))\n"
        )
        result = parse_drizzle_schema(source)
        (relation,) = result.schema.relations
        self.assertEqual(relation.from_table_id, "table-1")
        self.assertEqual(relation.to_column_id, "col-3")
        self.assertEqual(relation.type, "one-to-one")

    def test_explicit_one_wins_over_many_guess_in_either_block_order(self):
        tables = (
            "export const users = pgTable('users', { id: serial('id') })\n"
            "export const posts = pgTable('posts', {\n"
            "  id: serial('id'),\n"
            "  editorId: integer('editor_id'),\n"
            "  authorId: integer('author_id'),\n"
            "})\n"
        )
        users_block = "export const usersRelations = relations(users, ({ many }) => ({ posts: many(posts) }))\n"
        posts_block = (
            "export const postsRelations = relations(posts, ({ one }) => ({\n"
            "  author: one(users, { fields: [posts.authorId], references: [users.id] }),\n"
            "}))\n"
        )
        for blocks in ((users_block, posts_block), (posts_block, users_block)):
            with self.subTest(first_block=blocks[0][:28]):
                result = parse_drizzle_schema(tables + "".join(blocks))
                self.assertTrue(result.ok, result.error)
                (relation,) = result.schema.relations
                self.assertEqual(relation.id, "rel-1")
                self.assertEqual((relation.from_table_id, relation.from_column_id), ("table-1", "col-1"))
                self.assertEqual((relation.to_table_id, relation.to_column_id), ("table-2", "col-4"))
                self.assertEqual(relation.type, "one-to-many")

    def test_many_guess_is_dropped_when_inline_reference_links_the_tables(self):
        source = (
            "export const users = pgTable('users', { id: serial('id') })\n"
            "export const posts = pgTable('posts', {\n"
            "  id: serial('id'),\n"
            "  editorId: integer('editor_id'),\n"
            "  authorId: integer('author_id').references(() => users.id),\n"
            "})\n"
            "export const usersRelations = relations(users, ({ many }) => ({ posts: many(posts) }))\n"
        )
        result = parse_drizzle_schema(source)
        self.assertTrue(result.ok, result.error)
        (relation,) = result.schema.relations
        self.assertEqual(relation.to_column_id, "col-4")
        self.assertEqual(result.skipped, [])

    def test_unresolvable_references_are_skipped(self):
        source = (
            "export const posts = pgTable('posts', {\n"
            "  id: serial('id'),\n"
            "  ownerId: integer('owner_id').references(() => accounts.id),\n"
            "})\n"
        )
        result = parse_drizzle_schema(source)
        self.assertTrue(result.ok)
        self.assertEqual(result.schema.relations, [])
        self.assertEqual(len(result.skipped), 1)

    def test_many_to_many_is_never_inferred(self):
        result = parse_drizzle_schema(USERS_AND_POSTS)
        self.assertNotIn("many-to-many", [r.type for r in result.schema.relations])

    def test_parse_member_forms(self):
        self.assertEqual(parse_member("users.id"), ("users", "id"))
        self.assertEqual(parse_member(" users [ 'first name' ] "), ("users", "first name"))
        self.assertIsNone(parse_member("users"))


if __name__ == "__main__":
    unittest.main()
