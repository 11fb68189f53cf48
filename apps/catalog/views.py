"""
Catalog API views.

Product and category reads are public within a store (X-Store-ID is still
required). Writes require the matching products:*, categories:* or units:*
scope.
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_scopes, HasStoreScopes
from apps.catalog.services import CatalogService
from apps.catalog.serializers import (
    ProductSerializer, ProductWriteSerializer, ProductSearchSerializer,
    CategorySerializer, CategoryWriteSerializer,
    UnitOfMeasureSerializer, UnitOfMeasureWriteSerializer,
)

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def _can_manage_products(request):
    return 'products:manage' in (getattr(request, 'scopes', None) or set())


# ===== PRODUCTS =====

class ProductListView(APIView):
    """
    GET  /v1/products  (public)
    POST /v1/products  (products:create)
    """

    permission_classes = [HasStoreScopes]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['Catalog - Products'],
        summary='List products',
        description='''
List store products. Callers without `products:manage` only see active
products; the `active` filter applies to managers only.
        ''',
        parameters=[
            OpenApiParameter('search', OpenApiTypes.STR, description='Search name, description and SKU'),
            OpenApiParameter('category', OpenApiTypes.UUID, description='Filter by category ID'),
            OpenApiParameter('featured', OpenApiTypes.BOOL, description='Filter by featured flag'),
            OpenApiParameter('active', OpenApiTypes.BOOL, description='Filter by active flag (managers)'),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('page_size', OpenApiTypes.INT),
        ],
        responses={200: ProductSerializer(many=True)},
    )
    def get(self, request):
        params = ProductSearchSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        filters = params.validated_data

        products = CatalogService.list_products(
            request.store,
            search=filters.get('search'),
            category_id=filters.get('category'),
            featured=filters.get('featured'),
            active=filters.get('active'),
            include_inactive=_can_manage_products(request),
        )

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(products, request)
        serializer = ProductSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=['Catalog - Products'],
        summary='Create product',
        description='''
Rental products (`product_type=rental`) require `rental_price`.

**Required scope:** `products:create`
        ''',
        request=ProductWriteSerializer,
        responses={201: ProductSerializer, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('products:create')
    def post(self, request):
        serializer = ProductWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        product = CatalogService.create_product(
            request.store,
            serializer.validated_data,
            user=request.user,
            request=request,
        )
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


class FeaturedProductListView(APIView):
    """GET /v1/products/featured (public)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Catalog - Products'],
        summary='List featured products',
        responses={200: ProductSerializer(many=True)},
    )
    def get(self, request):
        products = CatalogService.featured_products(request.store)
        return Response(ProductSerializer(products, many=True).data)


class ProductDetailView(APIView):
    """
    GET         /v1/products/{id}  (public)
    PUT/PATCH   /v1/products/{id}  (products:edit)
    DELETE      /v1/products/{id}  (products:delete, soft delete)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Catalog - Products'],
        summary='Get product details',
        responses={200: ProductSerializer, 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, product_id):
        product = CatalogService.get_product(
            request.store, product_id, include_inactive=_can_manage_products(request)
        )
        return Response(ProductSerializer(product).data)

    @extend_schema(
        tags=['Catalog - Products'],
        summary='Update product',
        description='Partial update; omitted fields keep their value.\n\n**Required scope:** `products:edit`',
        request=ProductWriteSerializer,
        responses={200: ProductSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('products:edit')
    def patch(self, request, product_id):
        serializer = ProductWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        product = CatalogService.update_product(
            request.store,
            product_id,
            serializer.validated_data,
            user=request.user,
            request=request,
        )
        return Response(ProductSerializer(product).data)

    put = patch

    @extend_schema(
        tags=['Catalog - Products'],
        summary='Delete product',
        description='Soft delete. Existing orders keep their item snapshot.\n\n**Required scope:** `products:delete`',
        responses={204: None, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('products:delete')
    def delete(self, request, product_id):
        CatalogService.delete_product(request.store, product_id, user=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ===== CATEGORIES =====

class CategoryListView(APIView):
    """
    GET  /v1/categories  (public)
    POST /v1/categories  (categories:create)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Catalog - Categories'],
        summary='List categories',
        responses={200: CategorySerializer(many=True)},
    )
    def get(self, request):
        categories = CatalogService.list_categories(request.store)
        return Response(CategorySerializer(categories, many=True).data)

    @extend_schema(
        tags=['Catalog - Categories'],
        summary='Create category',
        description='**Required scope:** `categories:create`',
        request=CategoryWriteSerializer,
        responses={201: CategorySerializer, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('categories:create')
    def post(self, request):
        serializer = CategoryWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        category = CatalogService.create_category(
            request.store, serializer.validated_data, user=request.user, request=request
        )
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


class CategoryDetailView(APIView):
    """
    GET         /v1/categories/{id}  (public)
    PUT/PATCH   /v1/categories/{id}  (categories:edit)
    DELETE      /v1/categories/{id}  (categories:delete)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Catalog - Categories'],
        summary='Get category',
        responses={200: CategorySerializer, 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, category_id):
        category = CatalogService.get_category(request.store, category_id)
        return Response(CategorySerializer(category).data)

    @extend_schema(
        tags=['Catalog - Categories'],
        summary='Update category',
        description='**Required scope:** `categories:edit`',
        request=CategoryWriteSerializer,
        responses={200: CategorySerializer, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('categories:edit')
    def patch(self, request, category_id):
        serializer = CategoryWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        category = CatalogService.update_category(
            request.store, category_id, serializer.validated_data, user=request.user, request=request
        )
        return Response(CategorySerializer(category).data)

    put = patch

    @extend_schema(
        tags=['Catalog - Categories'],
        summary='Delete category',
        description='Products in the category are kept and lose their category.\n\n**Required scope:** `categories:delete`',
        responses={204: None, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('categories:delete')
    def delete(self, request, category_id):
        CatalogService.delete_category(request.store, category_id, user=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CategoryProductListView(APIView):
    """GET /v1/categories/{id}/products (public)"""

    permission_classes = [HasStoreScopes]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['Catalog - Categories'],
        summary='List products in category',
        responses={200: ProductSerializer(many=True), 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, category_id):
        products = CatalogService.products_in_category(
            request.store, category_id, include_inactive=_can_manage_products(request)
        )

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(products, request)
        serializer = ProductSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)


# ===== UNITS OF MEASURE =====

class UnitOfMeasureListView(APIView):
    """
    GET  /v1/units-of-measure  (units:view)
    POST /v1/units-of-measure  (units:create)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Catalog - Units'],
        summary='List units of measure',
        description='**Required scope:** `units:view`',
        responses={200: UnitOfMeasureSerializer(many=True)},
    )
    @requires_scopes('units:view')
    def get(self, request):
        units = CatalogService.list_units(request.store)
        return Response(UnitOfMeasureSerializer(units, many=True).data)

    @extend_schema(
        tags=['Catalog - Units'],
        summary='Create unit of measure',
        description='**Required scope:** `units:create`',
        request=UnitOfMeasureWriteSerializer,
        responses={201: UnitOfMeasureSerializer, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('units:create')
    def post(self, request):
        serializer = UnitOfMeasureWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        unit = CatalogService.create_unit(
            request.store, serializer.validated_data, user=request.user, request=request
        )
        return Response(UnitOfMeasureSerializer(unit).data, status=status.HTTP_201_CREATED)


class ActiveUnitOfMeasureListView(APIView):
    """GET /v1/units-of-measure/active (public)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Catalog - Units'],
        summary='List active units of measure',
        responses={200: UnitOfMeasureSerializer(many=True)},
    )
    def get(self, request):
        units = CatalogService.active_units(request.store)
        return Response(UnitOfMeasureSerializer(units, many=True).data)


class UnitOfMeasureDetailView(APIView):
    """
    PATCH  /v1/units-of-measure/{id}  (units:edit)
    DELETE /v1/units-of-measure/{id}  (units:delete)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Catalog - Units'],
        summary='Update unit of measure',
        description='**Required scope:** `units:edit`',
        request=UnitOfMeasureWriteSerializer,
        responses={200: UnitOfMeasureSerializer, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('units:edit')
    def patch(self, request, unit_id):
        serializer = UnitOfMeasureWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        unit = CatalogService.update_unit(
            request.store, unit_id, serializer.validated_data, user=request.user, request=request
        )
        return Response(UnitOfMeasureSerializer(unit).data)

    put = patch

    @extend_schema(
        tags=['Catalog - Units'],
        summary='Delete unit of measure',
        description='**Required scope:** `units:delete`',
        responses={204: None, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('units:delete')
    def delete(self, request, unit_id):
        CatalogService.delete_unit(request.store, unit_id, user=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)
