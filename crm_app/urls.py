from django.urls import path
from . import views

urlpatterns = [
    # Auth
    path('login/', views.login_view, name='login'),
    path('logout/', views.logout_view, name='logout'),

    # Pages
    path('', views.dashboard_view, name='home'),
    path('dashboard/', views.dashboard_view, name='dashboard'),
    path('sales/deals/', views.deals_view, name='deals'),
    path('sales/leads/', views.leads_view, name='leads'),
    path('sales/pipeline/', views.pipeline_view, name='pipeline'),
    path('support/tickets/', views.tickets_view, name='tickets'),

    # Stage transitions (funnel = deal | lead)
    path('sales/<str:funnel>/<str:record_id>/transition/', views.transition_view, name='transition'),

    # Remaining navigation items (role-gated placeholders)
    path('<str:section>/<str:item>/', views.section_view, name='section'),
]
