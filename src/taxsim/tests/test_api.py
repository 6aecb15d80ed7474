# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Tests for the simulation HTTP service.
"""

import os
import unittest
from unittest.mock import patch

from ..api.app import app


@patch.dict(os.environ, {"TAXSIM_NUM_WORKERS": "1"})
class TestSimulationApi(unittest.TestCase):
    """Tests for the Flask endpoints."""

    def setUp(self):
        app.config["TESTING"] = True
        self.client = app.test_client()

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["ok"])

    def test_simulate(self):
        response = self.client.post("/taxsim/api/v1/simulate", json={
            "simulation_count": 20,
            "years_later": 5,
            "seed": 3,
            "include_time_series": True,
        })
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["num_simulations"], 20)
        self.assertFalse(body["cancelled"])
        self.assertIn("ISK", body["statistics"]["median"]["scenarios"])
        self.assertEqual(len(body["representative"]["yearly_data"]), 5)
        self.assertEqual(len(body["time_series"]), 20 * 5)
        self.assertEqual(body["advantage_probability"]["first"], "ISK")

    def test_simulate_nested_parameters(self):
        response = self.client.post("/taxsim/api/v1/simulate", json={
            "parameters": {
                "simulationCount": 10,
                "yearsLater": 3,
                "scenarios": [{"name": "VP", "withdrawalRate": 0.04}],
            },
        })
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertNotIn("time_series", body)
        self.assertNotIn("advantage_probability", body)
        self.assertEqual(list(body["statistics"]["mean"]["scenarios"]), ["VP"])

    def test_simulate_is_reproducible(self):
        payload = {"simulation_count": 15, "years_later": 4, "seed": 8}
        first = self.client.post("/taxsim/api/v1/simulate", json=payload).get_json()
        second = self.client.post("/taxsim/api/v1/simulate", json=payload).get_json()
        self.assertEqual(first["statistics"], second["statistics"])

    def test_invalid_parameters_rejected(self):
        response = self.client.post("/taxsim/api/v1/simulate", json={"years_later": 0})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()["success"])

        response = self.client.post("/taxsim/api/v1/simulate", json={"initial_capital": "lots"})
        self.assertEqual(response.status_code, 400)

    def test_negative_seed_rejected(self):
        response = self.client.post("/taxsim/api/v1/simulate", json={"seed": -1, "simulation_count": 5})
        self.assertEqual(response.status_code, 400)
        self.assertIn("seed", response.get_json()["error"])

    def test_non_finite_number_rejected(self):
        response = self.client.post("/taxsim/api/v1/simulate", json={"years_later": float("nan")})
        self.assertEqual(response.status_code, 400)

    def test_boolean_strings(self):
        response = self.client.post("/taxsim/api/v1/simulate", json={
            "simulation_count": 5,
            "years_later": 2,
            "include_time_series": "false",
            "scenarios": [{"name": "VP", "is_notional": "false", "notional_tax_rate": 0.03}],
        })
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertNotIn("time_series", body)
        self.assertFalse(body["parameters"]["scenarios"][0]["is_notional"])

        response = self.client.post("/taxsim/api/v1/simulate", json={"include_time_series": "sometimes"})
        self.assertEqual(response.status_code, 400)

    def test_portfolio_summary_reported(self):
        response = self.client.post("/taxsim/api/v1/simulate", json={
            "simulation_count": 5,
            "years_later": 2,
            "seed": 1,
            "portfolio": {
                "assets": [
                    {"name": "Equity", "expected_return": 0.08, "volatility": 0.15, "weight": 0.5},
                    {"name": "Bonds", "expected_return": 0.04, "volatility": 0.05, "weight": 0.5},
                ],
                "correlation_matrix": [[1.0, 0.0], [0.0, 1.0]],
            },
        })
        self.assertEqual(response.status_code, 200)
        portfolio = response.get_json()["portfolio"]
        self.assertEqual(portfolio["assets"], ["Equity", "Bonds"])
        self.assertAlmostEqual(portfolio["expected_return"], 0.06)
        self.assertAlmostEqual(portfolio["volatility"], (0.5 ** 2 * 0.15 ** 2 + 0.5 ** 2 * 0.05 ** 2) ** 0.5)

    def test_body_must_be_object(self):
        response = self.client.post("/taxsim/api/v1/simulate", json=[1, 2, 3])
        self.assertEqual(response.status_code, 400)

        response = self.client.post("/taxsim/api/v1/simulate", data="not json")
        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main()
