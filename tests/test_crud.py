import unittest
from unittest.mock import MagicMock

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from agenda import crud, models
from agenda.main import store_error


class TestCRUD(unittest.TestCase):

    def setUp(self):
        self.mock_db = MagicMock(Session)

    def test_get_user_by_email(self):
        email = "test@example.com"
        mock_user = models.User(email=email, name="Test", password="hashed_password")
        self.mock_db.query().filter().first.return_value = mock_user

        user = crud.get_user_by_email(self.mock_db, email)
        self.assertIsNotNone(user)
        self.assertEqual(user.email, email)

    def test_create_user(self):
        created_user = crud.create_user(self.mock_db, "newuser@example.com", "New", "hashed_password")

        self.assertEqual(created_user.email, "newuser@example.com")
        self.assertEqual(created_user.password, "hashed_password")
        self.mock_db.add.assert_called_once_with(created_user)
        self.mock_db.commit.assert_called_once()

    def test_create_contact(self):
        fields = {"nombre": "John", "apellido": "Doe", "telefono": "123456789", "email": None}

        created_contact = crud.create_contact(self.mock_db, fields, owner_id=1)

        self.assertEqual(created_contact.nombre, "John")
        self.assertEqual(created_contact.owner_id, 1)
        self.assertIsNone(created_contact.email)
        self.mock_db.add.assert_called_once()
        self.mock_db.commit.assert_called_once()

    def test_update_contact(self):
        contact = models.Contact(nombre="John", apellido="Doe", telefono="1", owner_id=1)

        updated = crud.update_contact(self.mock_db, contact, {"telefono": "2"})

        self.assertEqual(updated.telefono, "2")
        self.assertEqual(updated.nombre, "John")
        self.mock_db.commit.assert_called_once()
        self.mock_db.refresh.assert_called_once_with(contact)

    def test_delete_contact_reports_missing(self):
        self.mock_db.query().filter().delete.return_value = 0
        self.assertFalse(crud.delete_contact(self.mock_db, 5, owner_id=1))

        self.mock_db.query().filter().delete.return_value = 1
        self.assertTrue(crud.delete_contact(self.mock_db, 5, owner_id=1))


class TestStoreError(unittest.TestCase):

    def setUp(self):
        self.mock_db = MagicMock(Session)

    def test_duplicate_key_is_conflict(self):
        exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: contacts.email"))

        error = store_error(self.mock_db, exc, "creating")

        self.assertEqual(error.status_code, 409)
        self.assertIn("'email'", error.detail)
        self.mock_db.rollback.assert_called_once()

    def test_postgres_duplicate_key_names_field(self):
        exc = IntegrityError("INSERT", {}, Exception('duplicate key value violates unique constraint\nDETAIL:  Key (telefono)=(1) already exists.'))

        error = store_error(self.mock_db, exc, "updating")

        self.assertEqual(error.status_code, 409)
        self.assertIn("'telefono'", error.detail)

    def test_other_database_errors_are_internal(self):
        exc = OperationalError("SELECT", {}, Exception("database is locked"))

        error = store_error(self.mock_db, exc, "creating")

        self.assertEqual(error.status_code, 500)
        self.assertEqual(error.detail, "Internal error while creating contact.")
        self.assertNotIn("locked", error.detail)


if __name__ == "__main__":
    unittest.main()
