import unittest

from cropyield.errors import InvalidPayload
from cropyield.events import UnhandledEvent, UserCreatedEvent, parse_event


class ParseEventTests(unittest.TestCase):
    def test_user_created_fields(self):
        event = parse_event(
            {
                "type": "user.created",
                "data": {
                    "id": "user_1",
                    "email_addresses": [
                        {"id": "idn_1", "email_address": "old@b.com"},
                        {"id": "idn_2", "email_address": "primary@b.com"},
                    ],
                    "primary_email_address_id": "idn_2",
                    "phone_numbers": [{"id": "pn_1", "phone_number": "+254700000000"}],
                    "first_name": "Wanjiru",
                    "last_name": "Kamau",
                    "username": "wkamau",
                    "image_url": "https://img.example/u1.png",
                    "object": "user",
                },
            }
        )
        self.assertIsInstance(event, UserCreatedEvent)
        self.assertEqual(event.data.email, "primary@b.com")
        self.assertEqual(event.data.phone, "+254700000000")
        self.assertEqual(event.data.full_name, "Wanjiru Kamau")
        self.assertEqual(event.data.username, "wkamau")

    def test_email_falls_back_to_first_address(self):
        event = parse_event(
            {
                "type": "user.created",
                "data": {
                    "id": "user_1",
                    "email_addresses": [{"email_address": "a@b.com"}],
                },
            }
        )
        self.assertEqual(event.data.email, "a@b.com")

    def test_partial_name_and_missing_contact(self):
        event = parse_event(
            {"type": "user.created", "data": {"id": "user_1", "last_name": "Otieno"}}
        )
        self.assertEqual(event.data.full_name, "Otieno")
        self.assertEqual(event.data.email, "")
        self.assertEqual(event.data.phone, "")
        self.assertIsNone(event.data.image_url)

    def test_user_created_without_id_rejected(self):
        with self.assertRaises(InvalidPayload):
            parse_event({"type": "user.created", "data": {"first_name": "A"}})

    def test_unknown_type_is_inert(self):
        event = parse_event({"type": "user.deleted", "data": {"id": "user_1"}})
        self.assertIsInstance(event, UnhandledEvent)
        self.assertEqual(event.type, "user.deleted")

    def test_envelope_must_have_type(self):
        for payload in ({}, {"type": 3}, ["user.created"], "user.created"):
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidPayload):
                    parse_event(payload)


if __name__ == "__main__":
    unittest.main()
