#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Collection pipeline fanning out Instaclustr API calls across clusters and nodes on every scrape."""

import asyncio
import time
from typing import List, Optional, Sequence

from ..commons import logging
from ..commons.constants import NODE_METRICS_QUERY
from ..commons.exceptions import DecodeError, ScrapeError, UpstreamRequestError
from ..upstream.client import MonitoringAPI, ProvisioningAPI
from .decoder import decode_cluster_status, decode_clusters, decode_node_metrics
from .mapper import map_cluster, map_node, map_node_metrics
from .schemas import Cluster, ClusterScrapeInfo, Node, NodeIdentity, ScrapeStatus, ScrapeSummary
from .sink import ObservationSink


logger = logging.get_logger(__name__)


class CollectionPipeline:
    """Collects the metrics of every cluster and node of an Instaclustr account.

    The pipeline holds no state between scrapes: every call to `collect` lists the clusters
    again and writes into the sink it is given, so overlapping scrapes only need separate sinks.
    """

    def __init__(
        self,
        provisioning: ProvisioningAPI,
        monitoring: MonitoringAPI,
        scrape_timeout: Optional[float] = None,
        max_concurrent_requests: Optional[int] = None,
        metric_query: str = NODE_METRICS_QUERY,
    ):
        """Initialize the pipeline.

        Args:
            provisioning: Provisioning API client.
            monitoring: Monitoring API client.
            scrape_timeout: Seconds to wait for all cluster branches. Branches still running after
                that are cancelled and reported as failed. None waits for all of them.
            max_concurrent_requests: Maximum number of node metrics requests in flight. None means unbounded.
            metric_query: Metric query sent to the monitoring API for every node.
        """
        self.provisioning = provisioning
        self.monitoring = monitoring
        self.scrape_timeout = scrape_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.metric_query = metric_query

    async def collect(self, sink: ObservationSink) -> ScrapeSummary:
        """Run one scrape and write its observations to `sink`.

        Blocks until every cluster and node branch has finished (or the scrape timeout expired).

        Raises:
            ScrapeError: If the cluster list cannot be fetched or decoded. Nothing is written
                to the sink in that case.
        """
        start_time = time.monotonic()
        written_before = len(sink)

        clusters = await self._fetch_clusters()
        logger.info(f"Collecting metrics for {len(clusters)} clusters")

        semaphore = asyncio.Semaphore(self.max_concurrent_requests) if self.max_concurrent_requests else None
        results = await self._join(clusters, sink, semaphore)

        summary = ScrapeSummary(
            total_clusters=len(clusters),
            failed_clusters=sum(1 for r in results if r.status == ScrapeStatus.FAILED),
            total_nodes=sum(r.nodes for r in results),
            failed_nodes=sum(r.failed_nodes for r in results),
            observations=len(sink) - written_before,
            clusters=results,
            duration_seconds=time.monotonic() - start_time,
        )

        logger.info(
            f"Scrape completed: {summary.total_clusters - summary.failed_clusters}/{summary.total_clusters} clusters, "
            f"{summary.total_nodes - summary.failed_nodes}/{summary.total_nodes} nodes, "
            f"{summary.observations} observations, duration: {summary.duration_seconds:.2f}s"
        )
        return summary

    async def _fetch_clusters(self) -> List[Cluster]:
        try:
            raw = await self.provisioning.list_clusters()
            return decode_clusters(raw)
        except (UpstreamRequestError, DecodeError) as e:
            logger.error(f"Couldn't get clusters: {e}")
            raise ScrapeError(f"Couldn't get clusters: {e}") from e

    async def _join(
        self, clusters: Sequence[Cluster], sink: ObservationSink, semaphore: Optional[asyncio.Semaphore]
    ) -> List[ClusterScrapeInfo]:
        """Run one task per cluster and wait for all of them, bounded by the scrape timeout."""
        if not clusters:
            return []

        tasks = [asyncio.ensure_future(self._collect_cluster_safe(cluster, sink, semaphore)) for cluster in clusters]
        if self.scrape_timeout is None:
            return list(await asyncio.gather(*tasks))

        done, pending = await asyncio.wait(tasks, timeout=self.scrape_timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Scrape timed out after {self.scrape_timeout}s, {len(pending)} clusters did not finish")

        results = []
        for cluster, task in zip(clusters, tasks):
            if task in done:
                results.append(task.result())
            else:
                results.append(
                    ClusterScrapeInfo(
                        cluster_id=cluster.id,
                        cluster_name=cluster.name,
                        status=ScrapeStatus.FAILED,
                        error=f"Timed out after {self.scrape_timeout}s",
                    )
                )
        return results

    async def _collect_cluster_safe(
        self, cluster: Cluster, sink: ObservationSink, semaphore: Optional[asyncio.Semaphore] = None
    ) -> ClusterScrapeInfo:
        """Collect a cluster, converting unexpected errors into a FAILED result.

        One cluster failing must not stop the collection of the others, so this never raises
        (cancellation excepted).
        """
        try:
            return await self.collect_cluster(cluster, sink, semaphore)
        except Exception as e:
            logger.error(f"Failed to collect metrics from cluster {cluster.id}: {e}", exc_info=True)
            return ClusterScrapeInfo(
                cluster_id=cluster.id,
                cluster_name=cluster.name,
                status=ScrapeStatus.FAILED,
                error=str(e),
            )

    async def collect_cluster(
        self, cluster: Cluster, sink: ObservationSink, semaphore: Optional[asyncio.Semaphore] = None
    ) -> ClusterScrapeInfo:
        """Collect the cluster level metrics of a cluster and the metrics of all its nodes.

        Returns:
            The result of the cluster. Its status is FAILED when the cluster status could not be
            fetched, PARTIAL when some nodes failed and SUCCESS otherwise.
        """
        sink.extend(map_cluster(cluster))

        try:
            raw = await self.provisioning.get_cluster_status(cluster.id)
            status = decode_cluster_status(raw, cluster.id)
        except (UpstreamRequestError, DecodeError) as e:
            logger.error(f"Couldn't get cluster {cluster.id} datacentres: {e}")
            return ClusterScrapeInfo(
                cluster_id=cluster.id,
                cluster_name=cluster.name,
                status=ScrapeStatus.FAILED,
                error=str(e),
            )

        nodes = status.nodes
        outcomes = await asyncio.gather(*(self._collect_node_safe(cluster, node, sink, semaphore) for node in nodes))
        failed_nodes = outcomes.count(False)

        return ClusterScrapeInfo(
            cluster_id=cluster.id,
            cluster_name=cluster.name,
            status=ScrapeStatus.PARTIAL if failed_nodes else ScrapeStatus.SUCCESS,
            nodes=len(nodes),
            failed_nodes=failed_nodes,
        )

    async def _collect_node_safe(
        self, cluster: Cluster, node: Node, sink: ObservationSink, semaphore: Optional[asyncio.Semaphore] = None
    ) -> bool:
        try:
            return await self.collect_node(cluster, node, sink, semaphore)
        except Exception as e:
            logger.error(f"Failed to collect metrics from node {node.id} of cluster {cluster.id}: {e}", exc_info=True)
            return False

    async def collect_node(
        self, cluster: Cluster, node: Node, sink: ObservationSink, semaphore: Optional[asyncio.Semaphore] = None
    ) -> bool:
        """Collect the info, health and monitoring metrics of a node.

        All observations of a node share one identity captured here, and the monitoring
        metrics of a response are written to the sink as a single batch.

        Returns:
            False when the monitoring metrics could not be fetched or decoded, True otherwise.
        """
        identity = NodeIdentity.from_records(cluster, node)
        sink.extend(map_node(identity, node))

        try:
            raw = await self._fetch_node_metrics(node.id, semaphore)
            responses = decode_node_metrics(raw, node.id)
        except (UpstreamRequestError, DecodeError) as e:
            logger.error(f"Could not gather metrics of node {node.id}: {e}")
            return False

        observations = map_node_metrics(identity, responses)
        sink.extend(observations)
        logger.debug(f"Collected {len(observations)} metrics from node {node.id} of cluster {cluster.id}")
        return True

    async def _fetch_node_metrics(self, node_id: str, semaphore: Optional[asyncio.Semaphore]) -> bytes:
        if semaphore is None:
            return await self.monitoring.get_node_metrics(node_id, self.metric_query)
        async with semaphore:
            return await self.monitoring.get_node_metrics(node_id, self.metric_query)
