import threading
import unittest

from cropyield.db import FeedbackRecord, InMemoryDbClient, PredictionRecord, UserRecord


class InMemoryDbClientTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.user_id = self.db.insert_user(UserRecord(clerk_id="user_1", email="a@b.com"))

    def _prediction(self, **kwargs) -> PredictionRecord:
        params = {
            "user_id": self.user_id,
            "crop_type": "maize",
            "planting_date": 1709251200,
            "yield_prediction": "3.2 t/ha",
            "harvest_date": 1719792000,
        }
        params.update(kwargs)
        return PredictionRecord(**params)

    def test_reads_during_concurrent_inserts(self):
        prediction_id = self.db.insert_prediction(self._prediction())
        errors: list[BaseException] = []
        done = threading.Event()

        def writer():
            try:
                for _ in range(2000):
                    new_id = self.db.insert_prediction(self._prediction())
                    self.db.insert_feedback(
                        FeedbackRecord(
                            prediction_id=new_id, user_id=self.user_id, accuracy_rating=3
                        )
                    )
                    self.db.insert_user(
                        UserRecord(clerk_id=f"user_{new_id}", email="x@b.com")
                    )
            except BaseException as exc:
                errors.append(exc)
            finally:
                done.set()

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            while not done.is_set():
                self.db.list_predictions_by_user(self.user_id)
                self.db.list_feedback_by_prediction(prediction_id)
                self.db.list_users()
                self.db.get_user_by_clerk_id("user_1")
        except RuntimeError as exc:
            errors.append(exc)
        finally:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(self.db.list_predictions_by_user(self.user_id)), 2001)
        self.assertEqual(len(self.db.list_users()), 2001)

    def test_returned_records_are_copies(self):
        user = self.db.get_user_by_clerk_id("user_1")
        user.role = "admin"
        self.assertEqual(self.db.get_user(self.user_id).role, "user")


if __name__ == "__main__":
    unittest.main()
