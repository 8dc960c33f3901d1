import unittest
from unittest.mock import patch

from gitverse.database.mongo import MongoConnection


class TestMongoConnection(unittest.TestCase):
    @patch("gitverse.database.mongo.MongoClient")
    def test_connect_is_lazy_and_reused(self, MockClient):
        connection = MongoConnection("mongodb://db:27017", "gitverse")

        with self.assertRaises(RuntimeError):
            connection.database

        first = connection.connect()
        second = connection.connect()

        MockClient.assert_called_once_with("mongodb://db:27017")
        self.assertIs(first, second)
        self.assertIs(connection.database, first)

    @patch("gitverse.database.mongo.MongoClient")
    def test_close_releases_client(self, MockClient):
        connection = MongoConnection("mongodb://db:27017", "gitverse")
        connection.connect()

        connection.close()
        connection.close()

        MockClient.return_value.close.assert_called_once()
        with self.assertRaises(RuntimeError):
            connection.database


if __name__ == "__main__":
    unittest.main()
