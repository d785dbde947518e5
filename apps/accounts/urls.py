from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    # Authentication
    path('signup', views.signup, name='signup'),
    path('login', views.login, name='login'),

    # Current user
    path('me', views.me, name='me'),
]
