"""
促销API接口测试 - 使用TestClient并替换服务依赖
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from app.main import app
from app.api.promotions import get_promotion_service
from app.core.exceptions import NotFoundError, ValidationFailedError, ConflictError, ForbiddenError
from app.models.promotion import (
    CouponQuote, PromotionSummary, PromotionStats, PromotionPage, Pagination, PromotionType
)
from app.services.promotion_service import PromotionService
from app.services.promotion_validator import REASON_USAGE_LIMIT


class TestPromotionsApi:
    """促销接口测试类"""

    @pytest.fixture
    def mock_service(self):
        return AsyncMock(spec=PromotionService)

    @pytest.fixture
    def client(self, mock_service):
        app.dependency_overrides[get_promotion_service] = lambda: mock_service
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_get_by_code(self, client, mock_service, make_promotion):
        mock_service.find_by_code.return_value = make_promotion()

        response = client.get("/v1/promotions/code/blackfriday2024")

        assert response.status_code == 200
        assert response.json()["code"] == "BLACKFRIDAY2024"
        mock_service.find_by_code.assert_called_once_with("blackfriday2024")

    def test_not_found_error_mapping(self, client, mock_service):
        """业务异常映射为 message + error_code"""
        mock_service.find_by_code.side_effect = NotFoundError("Cupom não encontrado")

        response = client.get("/v1/promotions/code/NOPE")

        assert response.status_code == 404
        assert response.json() == {"message": "Cupom não encontrado", "error_code": "not_found"}

    def test_validate_coupon(self, client, mock_service):
        mock_service.validate_coupon.return_value = CouponQuote(
            promotion=PromotionSummary(
                promotion_id="promo_001",
                name="Black Friday 2024",
                promotion_type=PromotionType.PERCENTAGE,
                discount_value=Decimal("25"),
                is_free_shipping=False
            ),
            discount_amount=Decimal("50.00"),
            final_total=Decimal("150.00")
        )

        response = client.post(
            "/v1/promotions/validate-coupon",
            json={
                "code": "blackfriday2024",
                "order_total": "200.00",
                "order_items": [{"product_id": "prod_a", "quantity": 2, "price": "100.00"}]
            },
            headers={"X-User-Id": "user_1"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["is_valid"] is True
        assert Decimal(str(body["discount_amount"])) == Decimal("50.00")
        args = mock_service.validate_coupon.call_args
        assert args.args[0] == "blackfriday2024"
        assert args.args[3] == "user_1"

    def test_validate_coupon_requires_user(self, client, mock_service):
        """缺少 X-User-Id 时请求无效"""
        response = client.post(
            "/v1/promotions/validate-coupon",
            json={"code": "X", "order_total": "10.00"}
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "invalid_request"
        mock_service.validate_coupon.assert_not_called()

    def test_apply_rejected(self, client, mock_service):
        mock_service.apply_promotion.side_effect = ValidationFailedError(REASON_USAGE_LIMIT)

        response = client.post(
            "/v1/promotions/apply",
            json={"promotion_id": "promo_001", "order_id": "order_001"},
            headers={"X-User-Id": "user_1"}
        )

        assert response.status_code == 400
        assert response.json() == {"message": REASON_USAGE_LIMIT, "error_code": "validation_failed"}
        mock_service.apply_promotion.assert_called_once_with(
            "promo_001", "order_001", "user_1", code=None
        )

    def test_apply_forbidden(self, client, mock_service):
        mock_service.apply_promotion.side_effect = ForbiddenError("Você não tem permissão para modificar este pedido")

        response = client.post(
            "/v1/promotions/apply",
            json={"promotion_id": "promo_001", "order_id": "order_001", "code": "X"},
            headers={"X-User-Id": "user_2"}
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "forbidden"

    def test_create_conflict(self, client, mock_service):
        mock_service.create_promotion.side_effect = ConflictError("Código 'X' já está em uso")

        response = client.post(
            "/v1/promotions",
            json={
                "name": "Nova",
                "promotion_type": "PERCENTAGE",
                "discount_value": "10",
                "code": "x",
                "start_date": "2024-11-29T00:00:00Z"
            },
            headers={"X-User-Id": "admin_1"}
        )

        assert response.status_code == 409
        data, = mock_service.create_promotion.call_args.args
        assert data.code == "X"
        assert mock_service.create_promotion.call_args.kwargs == {"creator_id": "admin_1"}

    def test_create_promotion(self, client, mock_service, make_promotion):
        mock_service.create_promotion.return_value = make_promotion()

        response = client.post(
            "/v1/promotions",
            json={
                "name": "Black Friday 2024",
                "promotion_type": "PERCENTAGE",
                "discount_value": "10",
                "code": "blackfriday2024",
                "start_date": "2024-11-29T00:00:00Z"
            },
            headers={"X-User-Id": "admin_1"}
        )

        assert response.status_code == 201
        assert response.json()["promotion_id"] == "promo_001"

    def test_list_query_parameters(self, client, mock_service):
        mock_service.list_promotions.return_value = PromotionPage(
            promotions=[],
            pagination=Pagination(total=0, page=2, limit=5, total_pages=0)
        )

        response = client.get(
            "/v1/promotions",
            params={"type": "BOGO", "active_only": "true", "sort_by": "priority_desc", "page": 2, "limit": 5}
        )

        assert response.status_code == 200
        query = mock_service.list_promotions.call_args.args[0]
        assert query.promotion_type == PromotionType.BOGO
        assert query.active_only is True
        assert query.page == 2
        assert query.limit == 5

    def test_list_limit_bounds(self, client, mock_service):
        response = client.get("/v1/promotions", params={"limit": 101})

        assert response.status_code == 422
        mock_service.list_promotions.assert_not_called()

    def test_active_route_not_shadowed_by_id(self, client, mock_service):
        mock_service.list_active.return_value = PromotionPage(
            promotions=[],
            pagination=Pagination(total=0, page=1, limit=10, total_pages=0)
        )

        response = client.get("/v1/promotions/active")

        assert response.status_code == 200
        mock_service.find_one.assert_not_called()

    def test_stats(self, client, mock_service):
        mock_service.get_promotion_stats.return_value = PromotionStats(
            total_uses=3,
            total_discount_given=Decimal("20.00"),
            unique_users=2,
            average_discount_per_use=Decimal("6.67")
        )

        response = client.get("/v1/promotions/promo_001/stats")

        assert response.status_code == 200
        assert response.json()["total_uses"] == 3

    def test_delete(self, client, mock_service):
        mock_service.delete_promotion.return_value = True

        response = client.delete("/v1/promotions/promo_001")

        assert response.status_code == 200
        assert response.json() == {"promotion_id": "promo_001", "deleted": True}
