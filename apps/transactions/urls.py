from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

app_name = 'transactions'

# Routes have no trailing slash
router = SimpleRouter(trailing_slash=False)
router.register(r'transactions', views.TransactionViewSet, basename='transaction')
router.register(r'installments', views.InstallmentViewSet, basename='installment')

urlpatterns = [
    # Transaction ViewSet routes
    # GET    /transactions                      - List (startDate, endDate, type, month, year)
    # POST   /transactions                      - Create
    # GET    /transactions/summary              - Window totals
    # GET    /transactions/{id}                 - Get (withInstallments=true embeds installments)
    # PUT    /transactions/{id}                 - Strict partial update
    # DELETE /transactions/{id}                 - Delete
    # PUT    /transactions/{id}/status          - Change status
    # POST   /transactions/{id}/materialize     - Materialize a recurring period

    # Installment purchases (purchase id or any installment id)
    # GET    /installments/{id}                 - Get the purchase
    # GET    /installments/{id}/installments    - List installments
    # DELETE /installments/{id}                 - Delete purchase and installments

    path('', include(router.urls)),
]
