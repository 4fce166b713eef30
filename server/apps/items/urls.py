"""URL configuration for the items API."""

from django.urls import path

from server.apps.items import views

app_name = 'items'

urlpatterns = [
    path('', views.items_collection, name='collection'),
    path('<int:item_id>/', views.item_resource, name='detail'),
    path('archive/<int:item_id>/', views.item_archive, name='archive'),
    path('restore/<int:item_id>/', views.item_restore, name='restore'),
    path('access/<int:item_id>/', views.item_access, name='access'),
    path(
        'shared_link/<int:item_id>/',
        views.item_shared_link,
        name='shared-link',
    ),
    path('accessed/<int:item_id>/', views.item_accessed, name='accessed'),
    path('shared/<str:token>/', views.shared_item, name='shared'),
]
