"""
Import/export URL configuration.
"""
from django.urls import path
from apps.exchange import views

app_name = 'exchange'

urlpatterns = [
    path('export/excel', views.ExcelExportView.as_view(), name='excel-export'),
    path('export/excel/<str:sheet_type>', views.ExcelExportView.as_view(), name='excel-export-sheet'),
    path('import/excel', views.ExcelImportView.as_view(), name='excel-import'),
    path('import/excel/<str:sheet_type>', views.ExcelImportView.as_view(), name='excel-import-sheet'),
    path('database/export', views.DatabaseExportView.as_view(), name='database-export'),
    path('database/import', views.DatabaseImportView.as_view(), name='database-import'),
]
