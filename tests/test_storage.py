import sys
import threading
import time
import unittest

from db import build_engine, create_db_and_tables
from models import RequestStatus, UserRole
from storage import DatabaseStorage, MemStorage


def gift_data(vendor_id, **overrides):
    data = {
        "name": "Steel Bottle",
        "description": "Insulated steel water bottle",
        "price": 2500,
        "vendor_id": vendor_id,
        "category": "Drinkware",
        "image_url": "https://example.com/bottle.png",
        "brandable": True,
        "eco_friendly": False,
    }
    data.update(overrides)
    return data


class StorageContract:
    """Behaviour every Storage backend must share. Subclasses provide make_storage()."""

    def make_storage(self):
        raise NotImplementedError

    def setUp(self):
        self.storage = self.make_storage()
        self.vendor = self.storage.create_user(
            {
                "username": "Vendy",
                "password": "hash",
                "email": "Vendy@Example.com",
                "name": "Vendor One",
                "role": UserRole.VENDOR.value,
            }
        )
        self.hr = self.storage.create_user(
            {
                "username": "harriet",
                "password": "hash",
                "email": "harriet@example.com",
                "name": "Harriet",
                "company": "Acme",
                "role": UserRole.HR.value,
            }
        )

    # ---------- users ----------

    def test_user_ids_increase_and_lookups_ignore_case(self):
        self.assertLess(self.vendor.id, self.hr.id)
        self.assertEqual(self.storage.get_user_by_username("VENDY").id, self.vendor.id)
        self.assertEqual(self.storage.get_user_by_email("vendy@example.com").id, self.vendor.id)
        self.assertIsNone(self.storage.get_user_by_username("nobody"))
        self.assertIsNone(self.storage.get_user_by_email("nobody@example.com"))
        self.assertIsNone(self.storage.get_user(9999))

    def test_create_user_does_not_reject_duplicates(self):
        again = self.storage.create_user(
            {
                "username": "vendy",
                "password": "hash",
                "email": "vendy@example.com",
                "name": "Copy",
            }
        )
        self.assertNotEqual(again.id, self.vendor.id)
        self.assertEqual(again.role, UserRole.HR.value)
        self.assertEqual(len(self.storage.get_all_users()), 3)

    def test_get_all_users_keeps_password_hash(self):
        users = self.storage.get_all_users()
        self.assertTrue(all(u.password == "hash" for u in users))

    def test_update_user_role(self):
        updated = self.storage.update_user_role(self.hr.id, UserRole.ADMIN.value)
        self.assertEqual(updated.role, UserRole.ADMIN.value)
        self.assertEqual(self.storage.get_user(self.hr.id).role, UserRole.ADMIN.value)
        self.assertIsNone(self.storage.update_user_role(9999, UserRole.ADMIN.value))

    # ---------- gifts ----------

    def test_create_gift_is_never_approved(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id, approved=True))
        self.assertFalse(gift.approved)
        self.assertIsNotNone(gift.created_at)
        self.assertFalse(self.storage.get_gift(gift.id).approved)

    def test_approved_filter_splits_gifts(self):
        first = self.storage.create_gift(gift_data(self.vendor.id, name="A"))
        second = self.storage.create_gift(gift_data(self.vendor.id, name="B"))
        self.storage.create_gift(gift_data(self.vendor.id, name="C"))
        self.storage.approve_gift(second.id, True)

        every = {g.id for g in self.storage.get_all_gifts()}
        approved = {g.id for g in self.storage.get_all_gifts(True)}
        pending = {g.id for g in self.storage.get_all_gifts(False)}

        self.assertEqual(approved, {second.id})
        self.assertIn(first.id, pending)
        self.assertFalse(approved & pending)
        self.assertEqual(approved | pending, every)

    def test_gifts_by_vendor_includes_unapproved(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        self.storage.create_gift(gift_data(self.hr.id, name="Someone else's"))
        self.assertEqual([g.id for g in self.storage.get_gifts_by_vendor(self.vendor.id)], [gift.id])

    def test_update_gift_merges_shallowly(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        self.storage.approve_gift(gift.id, True)

        updated = self.storage.update_gift(gift.id, {"price": 3100})
        self.assertEqual(updated.price, 3100)
        self.assertEqual(updated.name, "Steel Bottle")
        # the re-approval rule lives in the route layer
        self.assertTrue(updated.approved)
        self.assertIsNone(self.storage.update_gift(9999, {"price": 1}))

    def test_delete_gift(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        self.storage.approve_gift(gift.id, True)
        self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": gift.id, "quantity": 1})

        self.assertTrue(self.storage.delete_gift(gift.id))
        self.assertIsNone(self.storage.get_gift(gift.id))
        self.assertEqual(self.storage.get_cart_items(self.hr.id), [])
        self.assertFalse(self.storage.delete_gift(gift.id))

    def test_approve_gift_is_idempotent(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        self.assertTrue(self.storage.approve_gift(gift.id, True).approved)
        self.assertTrue(self.storage.approve_gift(gift.id, True).approved)
        self.assertNotIn(gift.id, {g.id for g in self.storage.get_all_gifts(False)})
        self.assertIsNone(self.storage.approve_gift(9999, True))

    # ---------- cart ----------

    def test_add_to_cart_merges_same_gift(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        first = self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": gift.id, "quantity": 2})
        second = self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": gift.id, "quantity": 3})

        self.assertEqual(first.id, second.id)
        items = self.storage.get_cart_items(self.hr.id)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].quantity, 5)

    def test_cart_rows_are_per_user(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": gift.id, "quantity": 1})
        self.storage.add_to_cart({"user_id": self.vendor.id, "gift_id": gift.id, "quantity": 1})
        self.assertEqual(len(self.storage.get_cart_items(self.hr.id)), 1)
        self.assertEqual(len(self.storage.get_cart_items(self.vendor.id)), 1)

    def test_update_and_remove_cart_item(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        item = self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": gift.id, "quantity": 1})

        self.assertEqual(self.storage.update_cart_item(item.id, 7).quantity, 7)
        self.assertEqual(self.storage.get_cart_item(item.id).quantity, 7)
        self.assertIsNone(self.storage.update_cart_item(9999, 2))

        self.assertTrue(self.storage.remove_from_cart(item.id))
        self.assertIsNone(self.storage.get_cart_item(item.id))
        self.assertFalse(self.storage.remove_from_cart(item.id))

    def test_clear_cart_always_succeeds(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        other = self.storage.create_gift(gift_data(self.vendor.id, name="Mug"))
        self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": gift.id, "quantity": 1})
        self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": other.id, "quantity": 1})
        self.storage.add_to_cart({"user_id": self.vendor.id, "gift_id": gift.id, "quantity": 1})

        self.assertTrue(self.storage.clear_cart(self.hr.id))
        self.assertEqual(self.storage.get_cart_items(self.hr.id), [])
        self.assertEqual(len(self.storage.get_cart_items(self.vendor.id)), 1)
        self.assertTrue(self.storage.clear_cart(self.hr.id))

    # ---------- gift requests ----------

    def test_create_gift_request_forces_pending(self):
        request = self.storage.create_gift_request(
            {
                "user_id": self.hr.id,
                "items": [{"gift_id": 1, "quantity": 2, "price": 100, "name": "Pen"}],
                "total_price": 200,
                "status": RequestStatus.APPROVED.value,
                "notes": "For the team",
            }
        )
        self.assertEqual(request.status, RequestStatus.PENDING.value)
        self.assertEqual(request.created_at, request.updated_at)
        stored = self.storage.get_gift_requests(self.hr.id)[0]
        self.assertEqual(stored.items[0]["name"], "Pen")
        self.assertEqual(stored.total_price, 200)

    def test_get_gift_requests_filters_by_user(self):
        for user in (self.hr, self.hr, self.vendor):
            self.storage.create_gift_request({"user_id": user.id, "items": [], "total_price": 0})
        self.assertEqual(len(self.storage.get_gift_requests()), 3)
        self.assertEqual(len(self.storage.get_gift_requests(self.hr.id)), 2)
        self.assertEqual(self.storage.get_gift_requests(9999), [])

    def test_update_gift_request_status_touches_updated_at(self):
        request = self.storage.create_gift_request({"user_id": self.hr.id, "items": [], "total_price": 0})
        time.sleep(0.01)
        updated = self.storage.update_gift_request_status(request.id, RequestStatus.APPROVED.value)
        self.assertEqual(updated.status, RequestStatus.APPROVED.value)
        self.assertGreater(updated.updated_at, updated.created_at)
        self.assertIsNone(self.storage.update_gift_request_status(9999, RequestStatus.APPROVED.value))

    # ---------- admin ----------

    def test_stats(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        self.storage.create_gift(gift_data(self.vendor.id, name="Mug"))
        self.storage.approve_gift(gift.id, True)
        self.storage.create_gift_request({"user_id": self.hr.id, "items": [], "total_price": 0})

        self.assertEqual(
            self.storage.get_stats(),
            {
                "total_users": 2,
                "total_gifts": 2,
                "total_approved_gifts": 1,
                "total_requests": 1,
            },
        )


class MemStorageTestCase(StorageContract, unittest.TestCase):
    def make_storage(self):
        return MemStorage()

    def test_parallel_writers_keep_ids_and_quantities(self):
        gift = self.storage.create_gift(gift_data(self.vendor.id))
        workers, rounds = 8, 200

        def hammer():
            for _ in range(rounds):
                self.storage.add_to_cart({"user_id": self.hr.id, "gift_id": gift.id, "quantity": 1})
                self.storage.create_gift_request({"user_id": self.hr.id, "items": [], "total_price": 0})

        old_interval = sys.getswitchinterval()
        sys.setswitchinterval(1e-6)
        try:
            threads = [threading.Thread(target=hammer) for _ in range(workers)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
        finally:
            sys.setswitchinterval(old_interval)

        items = self.storage.get_cart_items(self.hr.id)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].quantity, workers * rounds)

        requests = self.storage.get_gift_requests(self.hr.id)
        self.assertEqual(len(requests), workers * rounds)
        self.assertEqual(len({r.id for r in requests}), workers * rounds)


class DatabaseStorageTestCase(StorageContract, unittest.TestCase):
    def make_storage(self):
        engine = build_engine("sqlite://", echo=False)
        create_db_and_tables(engine)
        self.addCleanup(engine.dispose)
        return DatabaseStorage(engine)


if __name__ == "__main__":
    unittest.main()
