from httpx import AsyncClient


class TestHealthEndpoints:
    async def test_health_check(self, anonymous_client: AsyncClient):
        response = await anonymous_client.get("/api/v1/health/")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "hris-billing"}

    async def test_db_health_check(self, anonymous_client: AsyncClient):
        response = await anonymous_client.get("/api/v1/health/db")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}
