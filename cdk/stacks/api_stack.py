import logging
import os

from aws_cdk import (
    Stack,
    Duration,
    CfnOutput,
    aws_apigateway as apigw,
    aws_certificatemanager as acm,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_route53 as route53,
    aws_route53_targets as targets,
)
from constructs import Construct

from stacks.config import ApiConfig
from stacks.references import (
    ResolvedReferences,
    ResourceKind,
    import_email_queue,
    import_table,
    registry_key,
)
from stacks.routes import RouteDefinition, compose_routes
from stacks.stage import APEX_DOMAIN, cors_origins, full_domain_name

logger = logging.getLogger(__name__)

REPO_ROOT = os.path.join(os.path.dirname(__file__), "../..")
DNS_RECORD_TTL = Duration.seconds(60)


class ApiStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, config: ApiConfig, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        namespace = config.namespace
        stage = config.stage.value

        # ─────────────────────────────────────────────
        # 1. Existing table and email queue
        #    ARNs are published to SSM by the data stack
        # ─────────────────────────────────────────────
        logger.info(
            f"Resolving {registry_key(namespace, config.stage, ResourceKind.TABLE)} and "
            f"{registry_key(namespace, config.stage, ResourceKind.EMAIL_QUEUE)}"
        )
        table = import_table(self, namespace, config.stage)
        email_queue = import_email_queue(self, namespace, config.stage)
        refs = ResolvedReferences.from_resources(table, email_queue, config.lambdas_config_arn)

        # ─────────────────────────────────────────────
        # 2. REST API
        # ─────────────────────────────────────────────
        self.api = apigw.RestApi(
            self,
            f"{namespace}-rest-api-{stage}",
            description=f"{namespace} website API ({stage})",
            default_cors_preflight_options=apigw.CorsOptions(
                allow_origins=cors_origins(config.stage),
            ),
            deploy_options=apigw.StageOptions(stage_name=stage),
        )

        # ─────────────────────────────────────────────
        # 3. Lambda per route
        # ─────────────────────────────────────────────
        self._layers = {}
        self.routes = compose_routes(config, refs)
        self.functions = {}
        for route in self.routes:
            self.functions[route.name] = self._add_route(route)

        # ─────────────────────────────────────────────
        # 4. Custom domain, certificate and DNS
        #    Must come after the routes so the mapping
        #    covers the whole API
        # ─────────────────────────────────────────────
        self.api_domain_name = full_domain_name(config.stage)
        logger.info(f"Binding {self.api_domain_name} to {self.api.node.id}")

        hosted_zone = route53.HostedZone.from_lookup(
            self,
            f"{namespace}-hosted-zone-{stage}",
            domain_name=APEX_DOMAIN,
        )

        # Validation happens asynchronously, the deploy does not wait on issuance here
        self.certificate = acm.Certificate(
            self,
            f"{namespace}-api-certificate-{stage}",
            domain_name=self.api_domain_name,
            validation=acm.CertificateValidation.from_dns(hosted_zone),
        )

        self.domain = apigw.DomainName(
            self,
            f"{namespace}-api-domain-name-{stage}",
            domain_name=self.api_domain_name,
            certificate=self.certificate,
        )
        self.domain.add_base_path_mapping(self.api)

        self.record = route53.ARecord(
            self,
            f"{namespace}-a-record-{stage}",
            zone=hosted_zone,
            record_name=self.api_domain_name,
            ttl=DNS_RECORD_TTL,
            target=route53.RecordTarget.from_alias(targets.ApiGatewayDomain(self.domain)),
        )

        # ─────────────────────────────────────────────
        # 5. Outputs
        # ─────────────────────────────────────────────
        CfnOutput(
            self,
            "ApiUrl",
            value=self.api.url,
            description="API Gateway stage URL",
        )

        CfnOutput(
            self,
            "DomainUrl",
            value=f"https://{self.api_domain_name}",
            description="Custom domain the website calls",
        )

        CfnOutput(
            self,
            "TableParameterName",
            value=registry_key(namespace, config.stage, ResourceKind.TABLE),
            description="SSM parameter the table ARN was read from",
        )

    def _layer(self, name: str) -> lambda_.ILayerVersion:
        """Shared layer built from layers/<name>, created once per stack."""
        if name not in self._layers:
            self._layers[name] = lambda_.LayerVersion(
                self,
                f"{self.config.namespace}-{name}-layer-{self.config.stage.value}",
                code=lambda_.Code.from_asset(os.path.join(REPO_ROOT, "layers", name)),
                compatible_runtimes=[lambda_.Runtime.PYTHON_3_12],
                description=f"{name} library for Lambda",
            )
        return self._layers[name]

    def _add_route(self, route: RouteDefinition) -> lambda_.Function:
        fn = lambda_.Function(
            self,
            f"{self.config.namespace}-{route.name}-function-{self.config.stage.value}",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="handler.main",
            code=lambda_.Code.from_asset(os.path.join(REPO_ROOT, route.entry)),
            timeout=Duration.seconds(10),
            memory_size=128,
            layers=[self._layer(name) for name in route.layers],
            environment=route.environment,
            initial_policy=[
                iam.PolicyStatement(actions=grant.actions, resources=grant.resources)
                for grant in route.grants
            ],
        )

        resource = self.api.root.add_resource(route.path) if route.path else self.api.root
        resource.add_method(route.method, apigw.LambdaIntegration(fn, proxy=True))
        return fn
