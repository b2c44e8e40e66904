from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'settlements'

router = DefaultRouter()
router.register(r'split-bills', views.SplitBillViewSet, basename='split-bill')
router.register(r'expenses', views.ExpenseViewSet, basename='expense')

urlpatterns = [
    # Split bill routes
    # GET    /api/split-bills/                                   - List bills
    # POST   /api/split-bills/                                   - Create bill (with split)
    # GET    /api/split-bills/{id}/                              - Get bill details
    # GET    /api/split-bills/{id}/payment-summary/              - Payment summary + open debts
    # POST   /api/split-bills/{id}/participants/{user_id}/paid/  - Mark share as paid
    # POST   /api/split-bills/{id}/reject/                       - Reject own share
    # GET    /api/split-bills/my_outstanding/                    - Caller's pending shares

    # Expense routes
    # GET    /api/expenses/        - List expenses
    # POST   /api/expenses/        - Record expense
    # GET    /api/expenses/{id}/   - Get expense details

    # Group settlement
    path('groups/<uuid:group_id>/settlement/', views.group_settlement, name='group-settlement'),
    path('groups/<uuid:group_id>/balances/', views.group_balances, name='group-balances'),

    path('', include(router.urls)),
]
