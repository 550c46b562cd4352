import json
import os
import tempfile
import unittest
from unittest import mock

import requests

from dispatch_errors import SubmissionError
from feature_builder import build_feature_collection
from feature_sinks import FileSink, HttpSink
from stubs import StubResponse

COLLECTION = build_feature_collection([
    {
        "id": "1",
        "type": "Feature",
        "properties": {"type": "a-f-G", "how": "m-g", "callsign": "Fire", "remarks": ""},
        "geometry": {"type": "Point", "coordinates": [-105.2, 39.7]},
    }
])


class RecordingSession:
    def __init__(self, answer):
        self.answer = answer
        self.calls = []
        self.closed = False

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer

    def close(self):
        self.closed = True


class FileSinkTest(unittest.TestCase):
    def test_writes_collection(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "features.json")

            FileSink(path)(COLLECTION)

            with open(path) as f:
                self.assertEqual(json.load(f), COLLECTION)

    def test_unwritable_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            sink = FileSink(os.path.join(tmp, "missing", "features.json"))

            with self.assertRaises(SubmissionError):
                sink(COLLECTION)


class HttpSinkTest(unittest.TestCase):
    def test_posts_collection(self):
        session = RecordingSession(StubResponse("{}"))

        HttpSink("https://map.example.com/features", "Bearer abc", timeout=5, session=session)(COLLECTION)

        url, kwargs = session.calls[0]
        self.assertEqual(url, "https://map.example.com/features")
        self.assertEqual(kwargs["json"], COLLECTION)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer abc")
        self.assertEqual(kwargs["timeout"], 5)

    def test_no_token_no_authorization_header(self):
        session = RecordingSession(StubResponse("{}"))

        HttpSink("https://map.example.com/features", session=session)(COLLECTION)

        self.assertNotIn("Authorization", session.calls[0][1]["headers"])

    def test_rejected_submission(self):
        session = RecordingSession(StubResponse("nope", status_code=401, reason="Unauthorized"))

        with self.assertRaises(SubmissionError):
            HttpSink("https://map.example.com/features", session=session)(COLLECTION)

    def test_unreachable_endpoint(self):
        session = RecordingSession(requests.exceptions.ConnectionError("refused"))

        with self.assertRaises(SubmissionError):
            HttpSink("https://map.example.com/features", session=session)(COLLECTION)

    def test_owned_session_is_closed_after_submit(self):
        session = RecordingSession(StubResponse("{}"))

        with mock.patch("feature_sinks.requests.Session", return_value=session):
            HttpSink("https://map.example.com/features")(COLLECTION)

        self.assertEqual(len(session.calls), 1)
        self.assertTrue(session.closed)

    def test_owned_session_is_closed_after_failure(self):
        session = RecordingSession(StubResponse("nope", status_code=500, reason="Server Error"))

        with mock.patch("feature_sinks.requests.Session", return_value=session):
            with self.assertRaises(SubmissionError):
                HttpSink("https://map.example.com/features")(COLLECTION)

        self.assertTrue(session.closed)

    def test_injected_session_is_left_open(self):
        session = RecordingSession(StubResponse("{}"))

        HttpSink("https://map.example.com/features", session=session)(COLLECTION)

        self.assertFalse(session.closed)


if __name__ == "__main__":
    unittest.main()
