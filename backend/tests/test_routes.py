# Overview: Pytest coverage for the HTTP layer: envelope shape, error kinds, end-to-end flows.

"""
Route Tests

Every response carries {status, message, data} with status "success" or
"error"; failures add {error, details} where error is one of not-found, conflict,
integrity, invalid-input, invalid-state, insufficient-stock, downstream.
"""

from conftest import envelope


class TestSystem:
    """Health and error envelope basics."""

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"

    def test_version(self, client, db_session):
        body = client.get("/version").get_json()
        assert body["api_version"] == "1.0.0"
        assert body["server_time"].endswith("Z")

    def test_unknown_route_is_not_found(self, client, db_session):
        response = client.get("/api/no-such-thing")
        body = envelope(response)
        assert response.status_code == 404
        assert body["error"] == "not-found"

    def test_missing_entity(self, client, db_session):
        response = client.get("/api/outlets/999")
        body = envelope(response)
        assert response.status_code == 404
        assert body["error"] == "not-found"
        assert body["details"] == {"id": 999}
        assert body["data"] is None


class TestOutletRoutes:
    """Outlet CRUD over HTTP."""

    def test_create_outlet(self, client, db_session):
        response = client.post("/api/outlets", json={"name": "HQ", "timezone": "Asia/Jakarta"})
        body = envelope(response)
        assert response.status_code == 201
        assert body["message"] == "created"
        assert body["data"]["timezone"] == "Asia/Jakarta"

    def test_missing_name(self, client, db_session):
        response = client.post("/api/outlets", json={})
        body = envelope(response)
        assert response.status_code == 400
        assert body["error"] == "invalid-input"

    def test_non_writable_field(self, client, db_session):
        body = envelope(client.post("/api/outlets", json={"name": "HQ", "id": 5}))
        assert body["error"] == "invalid-input"

    def test_non_object_body(self, client, db_session):
        body = envelope(client.post("/api/outlets", json=["HQ"]))
        assert body["error"] == "invalid-input"


class TestCustomerRoutes:
    """Identity conflicts surface as 409."""

    def test_duplicate_phone(self, client, db_session, customer):
        response = client.post("/api/customers", json={"name": "Twin", "phone": customer.phone})
        body = envelope(response)
        assert response.status_code == 409
        assert body["error"] == "conflict"
        assert body["details"] == {"phone": customer.phone}

    def test_delete_with_vehicles(self, client, db_session, customer, customer_vehicle):
        response = client.delete(f"/api/customers/{customer.id}")
        body = envelope(response)
        assert response.status_code == 409
        assert body["error"] == "integrity"


class TestServiceJobRoutes:
    """A service job from intake to pickup over HTTP."""

    def _intake(self, client, outlet, customer, vehicle, user):
        return client.post("/api/service-jobs", json={
            "customer_id": customer.id,
            "vehicle_id": vehicle.id,
            "received_by_user_id": user.id,
            "outlet_id": outlet.id,
            "problem_description": "Brake noise",
        })

    def test_intake_and_lifecycle(
        self, client, db_session, outlet, cashier, technician, customer, customer_vehicle, service, product
    ):
        response = self._intake(client, outlet, customer, customer_vehicle, cashier)
        body = envelope(response)
        assert response.status_code == 201
        job = body["data"]
        assert job["queue_number"] == 1
        assert job["service_code"] == f"SJ-{outlet.id}-0001"
        assert job["status"] == "QUEUED"
        assert job["grand_total"] == "0.00"

        status_url = f"/api/service-jobs/{job['id']}/status"
        response = client.post(status_url, json={"status": "WORKING", "user_id": cashier.id})
        body = envelope(response)
        assert response.status_code == 400
        assert body["error"] == "invalid-state"

        body = envelope(client.post(
            status_url, json={"status": "WORKING", "user_id": cashier.id, "technician_id": technician.id}
        ))
        assert body["data"]["status"] == "WORKING"
        assert body["message"] == "status changed to WORKING"

        details_url = f"/api/service-jobs/{job['id']}/details"
        envelope(client.post(details_url, json={
            "item_type": "SERVICE", "item_id": service.id,
            "quantity": 2, "price_per_item": "100", "cost_per_item": "40",
        }))
        envelope(client.post(details_url, json={
            "item_type": "PRODUCT", "item_id": product.id,
            "quantity": 1, "price_per_item": "50", "cost_per_item": "30",
        }))

        totals = envelope(client.get(f"/api/service-jobs/{job['id']}/totals"))["data"]
        assert totals["grand_total"] == "250.00"
        assert totals["cost_total"] == "110.00"
        assert totals["technician_commission"] == "20.00"
        assert totals["shop_profit"] == "120.00"

        for target in ("DONE", "PICKED_UP"):
            envelope(client.post(status_url, json={"status": target, "user_id": cashier.id}))

        history = envelope(client.get(f"/api/service-jobs/{job['id']}/history"))["data"]
        assert [h["status"] for h in history] == ["QUEUED", "WORKING", "DONE", "PICKED_UP"]

    def test_invalid_transition_details(self, client, db_session, outlet, cashier, customer, customer_vehicle):
        job = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]
        body = envelope(client.post(
            f"/api/service-jobs/{job['id']}/status", json={"status": "DONE", "user_id": cashier.id}
        ))
        assert body["error"] == "invalid-state"
        assert body["details"] == {"from": "QUEUED", "to": "DONE"}

    def test_status_requires_user(self, client, db_session, outlet, cashier, customer, customer_vehicle):
        job = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]
        body = envelope(client.post(f"/api/service-jobs/{job['id']}/status", json={"status": "WORKING"}))
        assert body["error"] == "invalid-input"

    def test_queue_reorder(self, client, db_session, outlet, cashier, customer, customer_vehicle):
        first = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]
        second = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]

        missing = envelope(client.post(
            f"/api/outlets/{outlet.id}/queue/reorder", json={"job_ids": [second["id"], first["id"], 424242]}
        ))
        assert missing["error"] == "not-found"
        assert missing["details"] == {"ids": [424242]}

        body = envelope(client.post(
            f"/api/outlets/{outlet.id}/queue/reorder", json={"job_ids": [second["id"], first["id"]]}
        ))
        assert [(j["id"], j["queue_number"]) for j in body["data"]] == [(second["id"], 1), (first["id"], 2)]

        queue = envelope(client.get(f"/api/outlets/{outlet.id}/queue"))["data"]
        assert [j["id"] for j in queue] == [second["id"], first["id"]]

    def test_oversized_down_payment(self, client, db_session, outlet, cashier, customer, customer_vehicle):
        response = client.post("/api/service-jobs", json={
            "customer_id": customer.id,
            "vehicle_id": customer_vehicle.id,
            "received_by_user_id": cashier.id,
            "outlet_id": outlet.id,
            "problem_description": "Brake noise",
            "down_payment": "1e30",
        })
        body = envelope(response)
        assert response.status_code == 400
        assert body["error"] == "invalid-input"

    def test_lookup_by_code_and_customer(self, client, db_session, outlet, cashier, customer, customer_vehicle):
        job = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]

        found = envelope(client.get(f"/api/service-jobs?service_code=SJ-{outlet.id}-0001"))["data"]
        assert found["id"] == job["id"]

        mine = envelope(client.get(f"/api/customers/{customer.id}/service-jobs"))["data"]
        assert [j["id"] for j in mine] == [job["id"]]

        missing = client.get("/api/customers/424242/service-jobs")
        assert missing.status_code == 404

    def test_patch_job(self, client, db_session, outlet, cashier, customer, customer_vehicle):
        job = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]
        body = envelope(client.patch(f"/api/service-jobs/{job['id']}", json={"technician_notes": "Check pads"}))
        assert body["data"]["technician_notes"] == "Check pads"

    def test_queue_reorder_bare_list(self, client, db_session, outlet, cashier, customer, customer_vehicle):
        first = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]
        second = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]

        body = envelope(client.post(f"/api/outlets/{outlet.id}/queue/reorder", json=[second["id"], first["id"]]))
        assert [(j["id"], j["queue_number"]) for j in body["data"]] == [(second["id"], 1), (first["id"], 2)]

        bad = envelope(client.post(f"/api/outlets/{outlet.id}/queue/reorder", json="1,2"))
        assert bad["error"] == "invalid-input"

    def test_delete_non_queued(self, client, db_session, outlet, cashier, technician, customer, customer_vehicle):
        job = envelope(self._intake(client, outlet, customer, customer_vehicle, cashier))["data"]
        envelope(client.post(
            f"/api/service-jobs/{job['id']}/status",
            json={"status": "WORKING", "user_id": cashier.id, "technician_id": technician.id},
        ))
        response = client.delete(f"/api/service-jobs/{job['id']}")
        body = envelope(response)
        assert response.status_code == 409
        assert body["error"] == "integrity"


class TestSalesRoutes:
    """Installment sale and payment over HTTP."""

    def test_installment_sale_and_payment(self, client, db_session, listed_vehicle, customer):
        response = client.post("/api/vehicle-sales", json={
            "vehicle_id": listed_vehicle.id,
            "customer_id": customer.id,
            "sale_price": "12000",
            "transaction_type": "INSTALLMENT",
            "payment_method": "INSTALLMENT",
            "down_payment": "2000",
            "installment": {"installment_count": 4, "start_date": "2024-01-15"},
        })
        body = envelope(response)
        assert response.status_code == 201
        data = body["data"]
        assert data["vehicle"]["sale_status"] == "SOLD"
        assert data["installment"]["remaining_balance"] == "10000.00"
        assert [p["due_date"] for p in data["payments"]] == [
            "2024-02-15", "2024-03-15", "2024-04-15", "2024-05-15",
        ]
        assert {p["due_amount"] for p in data["payments"]} == {"2500.00"}

        first = data["payments"][0]["id"]
        paid = envelope(client.post(
            f"/api/installment-payments/{first}/pay", json={"paid_amount": "2500", "payment_method": "CASH"}
        ))["data"]
        assert paid["payment"]["payment_status"] == "PAID"
        assert paid["status_path"][-1] == "PAID"
        assert paid["installment"]["remaining_balance"] == "7500.00"
        assert paid["next_payment_due"] == "2024-03-15"

    def test_sale_of_unlisted_vehicle(self, client, db_session, showroom_vehicle, customer):
        body = envelope(client.post("/api/vehicle-sales", json={
            "vehicle_id": showroom_vehicle.id,
            "customer_id": customer.id,
            "sale_price": "1000",
            "transaction_type": "CASH",
            "payment_method": "CASH",
        }))
        assert body["error"] == "invalid-state"


class TestCashFlowRoutes:
    """Cash flows over HTTP."""

    def test_create_and_total(self, client, db_session, cashier):
        response = client.post("/api/cash-flows", json={
            "flow_type": "INFLOW", "source": "Walk-in", "amount": "150000", "user_id": cashier.id,
        })
        body = envelope(response)
        assert response.status_code == 201
        assert body["data"]["amount"] == "150000.00"

        total = envelope(client.get("/api/cash-flows/total?flow_type=inflow"))["data"]
        assert total == {"flow_type": "INFLOW", "total": "150000.00"}

    def test_user_required(self, client, db_session):
        body = envelope(client.post("/api/cash-flows", json={
            "flow_type": "INFLOW", "source": "Walk-in", "amount": "1",
        }))
        assert body["error"] == "invalid-input"


class TestProductRoutes:
    """Product payload coercion."""

    def test_boolean_fields_need_json_booleans(self, client, db_session):
        response = client.post("/api/products", json={"name": "Spark Plug", "has_serial_number": "false"})
        body = envelope(response)
        assert response.status_code == 400
        assert body["error"] == "invalid-input"

        body = envelope(client.post("/api/products", json={"name": "Spark Plug", "has_serial_number": False}))
        assert body["data"]["has_serial_number"] is False


class TestTransactionRoutes:
    """A counter sale from invoice to settlement over HTTP."""

    def test_sale_lines_and_payment(self, client, db_session, outlet, cashier, customer, product):
        method = envelope(client.post("/api/payment-methods", json={"name": "Cash"}))["data"]

        response = client.post("/api/transactions", json={
            "outlet_id": outlet.id, "user_id": cashier.id, "customer_id": customer.id,
        })
        body = envelope(response)
        assert response.status_code == 201
        txn = body["data"]
        assert txn["invoice_number"] == f"INV-{outlet.id}-000001"

        line = envelope(client.post(
            f"/api/transactions/{txn['id']}/details", json={"product_id": product.id, "quantity": 2}
        ))["data"]
        assert line["total_price"] == "80000.00"
        assert envelope(client.get(f"/api/products/{product.id}"))["data"]["stock"] == 8

        short = client.post(f"/api/transactions/{txn['id']}/details", json={"product_id": product.id, "quantity": 9})
        assert short.status_code == 409
        assert envelope(short)["error"] == "insufficient-stock"

        envelope(client.post(
            f"/api/transactions/{txn['id']}/payments", json={"method_id": method["id"], "amount": "100000"}
        ))
        summary = envelope(client.get(f"/api/transactions/{txn['id']}/summary"))["data"]
        assert summary["payment_status"] == "OVERPAID"
        assert summary["change_due"] == "20000.00"

        completed = envelope(client.post(f"/api/transactions/{txn['id']}/complete"))["data"]
        assert completed["status"] == "SUCCESSFUL"

        found = envelope(client.get(f"/api/transactions?invoice_number={txn['invoice_number']}"))["data"]
        assert found["id"] == txn["id"]
        by_customer = envelope(client.get(f"/api/customers/{customer.id}/transactions"))["data"]
        assert [t["id"] for t in by_customer] == [txn["id"]]
        by_outlet = envelope(client.get(f"/api/outlets/{outlet.id}/transactions"))["data"]
        assert [t["id"] for t in by_outlet] == [txn["id"]]

    def test_outlet_required(self, client, db_session, cashier):
        body = envelope(client.post("/api/transactions", json={"user_id": cashier.id}))
        assert body["error"] == "invalid-input"
