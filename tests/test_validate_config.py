import sys
import types
import unittest
from unittest import mock

from dispatch_errors import ConfigurationError, UnsupportedDataType
from validate_config import (
    DEFAULT_SETTINGS,
    load_config_module,
    main,
    resolve_config,
    validate_agencies,
    validate_settings,
    validate_url,
)

RAW = {
    "API_URL": "https://dispatch.example.com/Production",
    "API_Token": "secret",
    "Agencies": [{"id": "JCFD", "name": "Jefferson County Fire"}],
}


class ResolveConfigTest(unittest.TestCase):
    def test_defaults(self):
        config = resolve_config(RAW)

        self.assertEqual(config.DataType, "incidents")
        self.assertFalse(config.DEBUG)
        self.assertEqual(config.Agencies[0].id, "JCFD")

    def test_units(self):
        config = resolve_config({**RAW, "DataType": "units", "DEBUG": True})

        self.assertEqual(config.DataType, "units")
        self.assertTrue(config.DEBUG)

    def test_missing_token(self):
        raw = dict(RAW)
        del raw["API_Token"]

        with self.assertRaises(ConfigurationError) as ctx:
            resolve_config(raw)

        self.assertIn("API_Token", str(ctx.exception))

    def test_wrong_type(self):
        with self.assertRaises(ConfigurationError):
            resolve_config({**RAW, "API_URL": 42})
        with self.assertRaises(ConfigurationError):
            resolve_config({**RAW, "Agencies": [{"id": "JCFD"}]})

    def test_unsupported_data_type(self):
        with self.assertRaises(UnsupportedDataType) as ctx:
            resolve_config({**RAW, "DataType": "vehicles"})

        self.assertIsInstance(ctx.exception, ConfigurationError)
        self.assertIn("vehicles", str(ctx.exception))


class SettingsValidationTest(unittest.TestCase):
    def test_defaults_are_valid(self):
        self.assertEqual(validate_settings(DEFAULT_SETTINGS), [])

    def test_bad_settings(self):
        errors = validate_settings({
            **DEFAULT_SETTINGS,
            "MAX_WORKERS": 0,
            "REQUEST_TIMEOUT": "soon",
            "FETCH_MODE": "parallel",
            "LOG_LEVEL": "LOUD",
            "SUBMIT_ENDPOINT": "ftp://example.com",
        })

        self.assertEqual(len(errors), 5)

    def test_agencies(self):
        errors = validate_agencies([
            {"id": "A", "name": "Alpha"},
            {"id": "A", "name": "Alpha again"},
            {"id": " ", "name": "Blank"},
            {"name": "No id"},
        ])

        self.assertEqual(len(errors), 3)

    def test_validate_url(self):
        self.assertTrue(validate_url("https://example.com/api"))
        self.assertFalse(validate_url("http://example.com/api"))
        self.assertTrue(validate_url("http://example.com/api", require_https=False))
        self.assertFalse(validate_url("not a url"))


class LoadConfigModuleTest(unittest.TestCase):
    def test_missing_module(self):
        with self.assertRaises(ConfigurationError):
            load_config_module("no_such_dispatch_config")

    def test_reads_constants(self):
        module = types.ModuleType("dispatch_test_config")
        module.API_URL = RAW["API_URL"]
        module.API_TOKEN = "secret"
        module.DATA_TYPE = "units"
        module.AGENCIES = RAW["Agencies"]
        module.MAX_WORKERS = 4

        with mock.patch.dict(sys.modules, {"dispatch_test_config": module}):
            raw, settings = load_config_module("dispatch_test_config")

        self.assertEqual(raw["API_Token"], "secret")
        self.assertEqual(raw["DataType"], "units")
        self.assertNotIn("DEBUG", raw)
        self.assertEqual(settings["MAX_WORKERS"], 4)
        self.assertEqual(settings["FETCH_MODE"], "per-agency")

    def test_main_reports_errors(self):
        module = types.ModuleType("dispatch_bad_config")
        module.API_URL = RAW["API_URL"]
        module.AGENCIES = RAW["Agencies"]

        with mock.patch.dict(sys.modules, {"dispatch_bad_config": module}):
            with self.assertLogs("validate_config", level="ERROR"):
                self.assertEqual(main(["--config-module", "dispatch_bad_config"]), 1)

    def test_main_accepts_valid_config(self):
        module = types.ModuleType("dispatch_good_config")
        module.API_URL = RAW["API_URL"]
        module.API_TOKEN = "secret"
        module.AGENCIES = RAW["Agencies"]

        with mock.patch.dict(sys.modules, {"dispatch_good_config": module}):
            self.assertEqual(main(["--config-module", "dispatch_good_config"]), 0)


if __name__ == "__main__":
    unittest.main()
